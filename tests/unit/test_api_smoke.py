"""
API Smoke Tests

Tests for the FastAPI endpoints:
1. GET /health returns ok
2. GET /census/root and /census/size serve the reconstructed tree
3. GET /census/proof/{address} returns a verifying proof; 404 if absent
4. POST /verify checks proofs offline
5. Census errors map to HTTP status codes
"""

import pytest
from fastapi.testclient import TestClient

from api.app import app
from api.deps import get_hasher, get_reconstructor
from census.cache import CacheStore
from census.crypto.hashing import to_hex
from census.merkle.codec import pack_leaf
from orchestrator.reconstructor import CensusReconstructor

from fixtures.census_fixtures import (
    ALICE,
    BOB,
    HASHER,
    InMemoryAccountFeed,
    InMemoryEventFeed,
    StaticRootSource,
    accounts_from_replay,
    addr,
    make_config,
    make_history,
    no_sleep,
    replay,
)


# Create test client
client = TestClient(app)


@pytest.fixture
def replayed():
    return replay(make_history())


@pytest.fixture
def reconstructor(replayed):
    return CensusReconstructor(
        account_feed=InMemoryAccountFeed(accounts_from_replay(replayed), tree_size=replayed.size),
        root_source=StaticRootSource(replayed.root),
        event_feed=InMemoryEventFeed(make_history()),
        cache=CacheStore(),
        hasher=HASHER,
        config=make_config(),
        sleep=no_sleep,
    )


@pytest.fixture(autouse=True)
def override_dependencies(reconstructor):
    app.dependency_overrides[get_reconstructor] = lambda: reconstructor
    app.dependency_overrides[get_hasher] = lambda: HASHER
    yield
    app.dependency_overrides.clear()


# =============================================================================
# Health
# =============================================================================

class TestHealth:

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "service": "census-api", "version": "v1"}

    def test_root_path(self):
        assert client.get("/").json()["ok"] is True


# =============================================================================
# Census
# =============================================================================

class TestCensus:

    def test_root(self, replayed):
        data = client.get("/census/root").json()
        assert data["root"] == to_hex(replayed.root)
        assert data["root_decimal"] == str(replayed.root)
        assert data["size"] == 5

    def test_size_of_current(self):
        assert client.get("/census/size").json()["size"] == 5

    def test_size_of_root(self, replayed, reconstructor):
        reconstructor.reconstruct()
        response = client.get("/census/size", params={"root": str(replayed.root)})
        assert response.status_code == 200
        assert response.json()["size"] == 5

    def test_size_of_unknown_root(self):
        response = client.get("/census/size", params={"root": "0x1234"})
        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_size_of_bad_root(self):
        response = client.get("/census/size", params={"root": "nonsense"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_reconstruct(self, replayed):
        response = client.post("/census/reconstruct", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["root"] == to_hex(replayed.root)
        assert data["path"] == "accounts"
        assert data["verified"] is True
        assert data["account_count"] == 4

    def test_reconstruct_from_events(self, replayed):
        data = client.post("/census/reconstruct", json={"from_events": True}).json()
        assert data["path"] == "events"
        assert data["root_decimal"] == str(replayed.root)

    def test_reconstruct_mismatch_is_409(self, replayed):
        response = client.post(
            "/census/reconstruct", json={"expected_root": str(replayed.root + 1)},
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "ROOT_MISMATCH"
        assert error["details"]["retryable"] is False

    def test_proof(self, replayed):
        response = client.get(f"/census/proof/{BOB}")
        assert response.status_code == 200
        data = response.json()
        assert data["index"] == 4
        assert data["weight"] == "3"
        assert data["root"] == str(replayed.root)
        assert data["leaf"] == str(pack_leaf(BOB, 3))

        verify = client.post("/verify", json={
            "root": data["root"], "leaf": data["leaf"], "siblings": data["siblings"],
        }).json()
        assert verify["valid"] is True

    def test_proof_absent_is_404(self):
        response = client.get(f"/census/proof/{addr(0xFFFF)}")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ACCOUNT_NOT_FOUND"

    def test_proof_bad_address_is_400(self):
        assert client.get("/census/proof/not-an-address").status_code == 400

    def test_account(self):
        data = client.get(f"/census/accounts/{ALICE}").json()
        assert data == {"ok": True, "address": ALICE, "weight": "15", "slot_index": 0}


# =============================================================================
# Verify and cache
# =============================================================================

class TestVerify:

    def test_address_and_weight(self, reconstructor):
        proof = reconstructor.proof_for(ALICE)
        response = client.post("/verify", json={
            "root": to_hex(proof.root),
            "address": ALICE,
            "weight": 15,
            "siblings": [str(s) for s in proof.siblings],
        })
        data = response.json()
        assert data["valid"] is True
        assert data["depth"] == len(proof.siblings)

    def test_wrong_weight_is_invalid_not_error(self, reconstructor):
        proof = reconstructor.proof_for(ALICE)
        response = client.post("/verify", json={
            "root": str(proof.root),
            "address": ALICE,
            "weight": 16,
            "siblings": [str(s) for s in proof.siblings],
        })
        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_requires_leaf_or_account(self):
        assert client.post("/verify", json={"root": "1"}).status_code == 422

    def test_malformed_sibling(self):
        response = client.post("/verify", json={"root": "1", "leaf": "1", "siblings": ["x"]})
        assert response.status_code == 400


class TestCache:

    def test_stats_and_clear(self, reconstructor):
        reconstructor.reconstruct()
        stats = client.get("/cache/stats").json()
        assert stats["cache"]["complete_trees"] == 1
        assert stats["tree"]["size"] == 5

        assert client.delete("/cache").json()["removed"] == 1
        assert client.get("/cache/stats").json()["tree"] is None
