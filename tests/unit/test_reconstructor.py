"""
Census Reconstructor Tests
Tests for orchestrator/reconstructor.py

1. State path rebuilds the same root as event replay
2. Cache hits skip the feed; cache entries are re-verified
3. Interrupted runs resume from the cached offset with the same result
4. Feed failures keep partial progress; data errors purge it
5. Root mismatches raise and purge
6. Proofs, account lookups and sizes
"""
import pytest

from census.cache import CacheStatus, CacheStore
from census.cache.backends import MemoryBackend
from census.crypto.hashing import to_hex
from census.merkle.codec import pack_leaf
from census.schemas.errors import (
    CacheWriteError,
    ConfigurationError,
    FeedDataError,
    FeedUnavailable,
    OrderingViolation,
    RootMismatchError,
)
from census.schemas.models import AccountRecord, BlockRef
from orchestrator.reconstructor import CensusReconstructor, build_cache_store

from fixtures.census_fixtures import (
    ALICE,
    BOB,
    CAROL,
    DAVE,
    HASHER,
    FlakyAccountFeed,
    InMemoryAccountFeed,
    InMemoryEventFeed,
    StaticRootSource,
    accounts_from_replay,
    addr,
    make_config,
    make_event,
    no_sleep,
    replay,
)


class ReadOnlyAfterFailureBackend(MemoryBackend):
    """MemoryBackend whose writes fail while `failing` is set."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def put(self, key, value):
        if self.failing:
            raise CacheWriteError("disk full", root_key=key)
        super().put(key, value)


def make_reconstructor(account_feed=None, root_source=None, event_feed=None, cache=None, **config):
    return CensusReconstructor(
        account_feed=account_feed,
        root_source=root_source,
        event_feed=event_feed,
        cache=cache if cache is not None else CacheStore(),
        hasher=HASHER,
        config=make_config(**config),
        sleep=no_sleep,
    )


class TestStatePath:

    def test_matches_replay(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        tree = reconstructor.reconstruct()

        assert tree.root == replayed.root
        assert tree.size == 5
        assert tree.account_count == 4
        assert tree.total_weight == 15 + 5 + 7 + 3
        assert tree.path == "accounts"
        assert tree.verified_against == replayed.root
        assert reconstructor.all_leaves() == replayed.tree.leaves

    @pytest.mark.parametrize("page_size,max_workers", [(1, 1), (1, 4), (2, 2), (3, 1), (100, 4)])
    def test_paging_does_not_change_root(self, account_feed, root_source, replayed, page_size, max_workers):
        reconstructor = make_reconstructor(
            account_feed, root_source, page_size=page_size, max_workers=max_workers,
        )
        assert reconstructor.reconstruct().root == replayed.root

    def test_unsorted_feed_page(self, replayed, root_source):
        """Records within a page are placed by slot, not by arrival order."""
        feed = InMemoryAccountFeed(accounts_from_replay(replayed), tree_size=replayed.size)
        feed.accounts = list(reversed(feed.accounts))
        reconstructor = make_reconstructor(feed, root_source, page_size=10)
        assert reconstructor.reconstruct().root == replayed.root

    def test_tail_tombstones(self):
        """A removed account in the last slot still counts toward the size."""
        result = replay([
            make_event(ALICE, 0, 1, block=1),
            make_event(BOB, 0, 2, block=2),
            make_event(BOB, 2, 0, block=3),
        ])
        feed = InMemoryAccountFeed(accounts_from_replay(result), tree_size=result.size)
        reconstructor = make_reconstructor(feed, StaticRootSource(result.root))

        tree = reconstructor.reconstruct()
        assert tree.size == 2
        assert tree.root == result.root

    def test_tree_size_smaller_than_slots(self, replayed, root_source):
        feed = InMemoryAccountFeed(accounts_from_replay(replayed), tree_size=3)
        reconstructor = make_reconstructor(feed, root_source)
        with pytest.raises(FeedDataError):
            reconstructor.reconstruct()

    def test_empty_census(self):
        reconstructor = make_reconstructor(InMemoryAccountFeed([], tree_size=0), StaticRootSource(0))
        tree = reconstructor.reconstruct()
        assert tree.root == 0
        assert tree.size == 0
        assert reconstructor.proof_for(ALICE) is None

    def test_without_root_source(self, account_feed, replayed):
        reconstructor = make_reconstructor(account_feed)
        tree = reconstructor.reconstruct()
        assert tree.root == replayed.root
        assert tree.verified_against is None

    def test_requires_account_feed(self):
        with pytest.raises(ConfigurationError):
            make_reconstructor().reconstruct()


class TestFeedDataErrors:

    def test_slot_conflict(self, root_source):
        feed = InMemoryAccountFeed([
            AccountRecord(account_id=ALICE, weight=1, slot_index=0),
            AccountRecord(account_id=BOB, weight=1, slot_index=0),
        ])
        cache = CacheStore()
        reconstructor = make_reconstructor(feed, root_source, cache=cache, page_size=10)
        with pytest.raises(OrderingViolation):
            reconstructor.reconstruct()
        assert cache.get_entry(to_hex(root_source.root)) is None

    def test_weight_without_slot(self, root_source):
        feed = InMemoryAccountFeed([AccountRecord(account_id=ALICE, weight=1)])
        reconstructor = make_reconstructor(feed, root_source)
        with pytest.raises(FeedDataError):
            reconstructor.reconstruct()

    def test_identical_duplicate_tolerated(self, replayed, root_source):
        accounts = accounts_from_replay(replayed)
        feed = InMemoryAccountFeed(accounts + [accounts[0]], tree_size=replayed.size)
        reconstructor = make_reconstructor(feed, root_source, page_size=10)
        assert reconstructor.reconstruct().root == replayed.root


class TestRootVerification:

    def test_mismatch_raises_and_purges(self, account_feed, replayed):
        wrong = replayed.root ^ 1
        cache = CacheStore()
        reconstructor = make_reconstructor(account_feed, StaticRootSource(wrong), cache=cache)

        with pytest.raises(RootMismatchError) as exc:
            reconstructor.reconstruct()

        assert exc.value.expected == wrong
        assert exc.value.actual == replayed.root
        assert cache.get_entry(to_hex(wrong)) is None

    def test_explicit_expected_root(self, account_feed, replayed):
        reconstructor = make_reconstructor(account_feed, StaticRootSource(0))
        tree = reconstructor.reconstruct(expected_root=replayed.root)
        assert tree.verified_against == replayed.root

    def test_verification_disabled_stores_actual_root(self, account_feed, replayed):
        wrong = replayed.root ^ 1
        cache = CacheStore()
        reconstructor = make_reconstructor(
            account_feed, StaticRootSource(wrong), cache=cache, verify_root=False,
        )
        tree = reconstructor.reconstruct()

        assert tree.root == replayed.root
        assert tree.verified_against is None
        assert cache.get_entry(to_hex(wrong)) is None
        assert cache.lookup(to_hex(replayed.root)) is not None

    def test_check_root(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        reconstructor.check_root(replayed.root)
        with pytest.raises(RootMismatchError):
            reconstructor.check_root(replayed.root + 1)

    def test_validate_root(self, account_feed, replayed):
        source = StaticRootSource(replayed.root, {replayed.root: BlockRef(block_number=42)})
        reconstructor = make_reconstructor(account_feed, source)
        assert reconstructor.validate_root(replayed.root).block_number == 42
        assert reconstructor.validate_root(1) is None

    def test_validate_root_requires_source(self, account_feed):
        with pytest.raises(ConfigurationError):
            make_reconstructor(account_feed).validate_root(1)


class TestCaching:

    def test_second_run_served_from_cache(self, account_feed, root_source, replayed):
        cache = CacheStore()
        reconstructor = make_reconstructor(account_feed, root_source, cache=cache)
        reconstructor.reconstruct()
        calls = len(account_feed.calls)

        tree = reconstructor.reconstruct()
        assert tree.path == "cache"
        assert tree.from_cache
        assert tree.root == replayed.root
        assert len(account_feed.calls) == calls

    def test_cache_shared_between_instances(self, account_feed, root_source):
        cache = CacheStore()
        make_reconstructor(account_feed, root_source, cache=cache).reconstruct()
        fresh = make_reconstructor(InMemoryAccountFeed([]), root_source, cache=cache)
        assert fresh.reconstruct().path == "cache"

    def test_stale_cache_refetched(self, account_feed, root_source, replayed):
        """Cached leaves that hash to another root are dropped and refetched."""
        cache = CacheStore()
        key = to_hex(replayed.root)
        cache.start_or_resume(key)
        cache.append_batch(key, [pack_leaf(ALICE, 1)])
        cache.mark_complete(key)

        tree = make_reconstructor(account_feed, root_source, cache=cache).reconstruct()
        assert tree.path == "accounts"
        assert cache.lookup(key).leaves == replayed.tree.leaves

    def test_clear(self, account_feed, root_source):
        cache = CacheStore()
        reconstructor = make_reconstructor(account_feed, root_source, cache=cache)
        reconstructor.reconstruct()
        assert reconstructor.clear() == 1
        assert reconstructor.stats() == {"tree": None, "cache": cache.stats().to_dict()}


class TestResume:

    def _flaky_setup(self, replayed, cache=None, **kwargs):
        feed = FlakyAccountFeed(accounts_from_replay(replayed), tree_size=replayed.size, **kwargs)
        cache = cache if cache is not None else CacheStore()
        reconstructor = make_reconstructor(
            feed, StaticRootSource(replayed.root), cache=cache, page_size=2, max_workers=1,
        )
        return feed, cache, reconstructor

    def test_failure_keeps_partial_entry(self, replayed):
        feed, cache, reconstructor = self._flaky_setup(replayed, fail_skips={2})
        with pytest.raises(FeedUnavailable):
            reconstructor.reconstruct()

        entry = cache.get_entry(to_hex(replayed.root))
        assert entry.status is CacheStatus.PARTIAL
        assert entry.next_offset == 2
        assert entry.leaves == replayed.tree.leaves[:3]

    def test_resume_gives_same_root(self, replayed):
        feed, cache, reconstructor = self._flaky_setup(replayed, fail_skips={2})
        with pytest.raises(FeedUnavailable):
            reconstructor.reconstruct()

        feed.healthy = True
        feed.calls.clear()
        tree = reconstructor.reconstruct()

        assert tree.root == replayed.root
        assert reconstructor.all_leaves() == replayed.tree.leaves
        assert all(skip >= 2 for _, skip in feed.calls)
        assert cache.lookup(to_hex(replayed.root)) is not None

    def test_failure_before_any_page_purges(self, replayed):
        feed, cache, reconstructor = self._flaky_setup(replayed, fail_skips={0})
        with pytest.raises(FeedUnavailable):
            reconstructor.reconstruct()
        assert cache.get_entry(to_hex(replayed.root)) is None

    def test_cache_write_failure_keeps_partial_entry(self, replayed):
        backend = ReadOnlyAfterFailureBackend()
        feed, cache, reconstructor = self._flaky_setup(
            replayed, cache=CacheStore(backend), fail_skips={2},
        )
        with pytest.raises(FeedUnavailable):
            reconstructor.reconstruct()

        feed.healthy = True
        backend.failing = True
        with pytest.raises(CacheWriteError):
            reconstructor.reconstruct()

        entry = cache.get_entry(to_hex(replayed.root))
        assert entry.status is CacheStatus.PARTIAL
        assert entry.next_offset == 2
        assert entry.leaves == replayed.tree.leaves[:3]

        backend.failing = False
        assert reconstructor.reconstruct().root == replayed.root

    def test_data_error_on_resume_purges(self, replayed, root_source):
        _, cache, reconstructor = self._flaky_setup(replayed, fail_skips={2})
        with pytest.raises(FeedUnavailable):
            reconstructor.reconstruct()

        conflicting = InMemoryAccountFeed(
            [AccountRecord(account_id=BOB, weight=3, slot_index=1)] * 3,
        )
        retry = make_reconstructor(conflicting, root_source, cache=cache, page_size=2, max_workers=1)
        with pytest.raises(OrderingViolation):
            retry.reconstruct()
        assert cache.get_entry(to_hex(replayed.root)) is None

    def test_transient_failure_retried(self, replayed):
        feed, cache, reconstructor = self._flaky_setup(replayed, transient_failures=1)
        assert reconstructor.reconstruct().root == replayed.root


class TestEventPath:

    def test_replay_matches_state_path(self, event_feed, root_source, replayed):
        reconstructor = make_reconstructor(event_feed=event_feed, root_source=root_source)
        tree = reconstructor.reconstruct_from_events()
        assert tree.root == replayed.root
        assert tree.path == "events"
        assert reconstructor.proof_for(BOB).index == 4

    def test_duplicate_events_across_pages(self, history, root_source, replayed):
        feed = InMemoryEventFeed(history[:3] + history[2:])
        reconstructor = make_reconstructor(event_feed=feed, root_source=root_source)
        assert reconstructor.reconstruct_from_events().root == replayed.root

    def test_unordered_feed_is_sorted(self, history, root_source, replayed):
        feed = InMemoryEventFeed(list(reversed(history)))
        reconstructor = make_reconstructor(event_feed=feed, root_source=root_source, page_size=3)
        assert reconstructor.reconstruct_from_events().root == replayed.root

    def test_event_root_mismatch(self, event_feed, replayed):
        reconstructor = make_reconstructor(
            event_feed=event_feed, root_source=StaticRootSource(replayed.root + 1),
        )
        with pytest.raises(RootMismatchError):
            reconstructor.reconstruct_from_events()

    def test_events_populate_cache(self, event_feed, account_feed, root_source, replayed):
        cache = CacheStore()
        make_reconstructor(event_feed=event_feed, root_source=root_source, cache=cache).reconstruct_from_events()
        tree = make_reconstructor(account_feed, root_source, cache=cache).reconstruct()
        assert tree.path == "cache"

    def test_cached_tree_skips_event_feed(self, account_feed, event_feed, root_source, replayed):
        cache = CacheStore()
        make_reconstructor(account_feed, root_source, cache=cache).reconstruct()

        reconstructor = make_reconstructor(event_feed=event_feed, root_source=root_source, cache=cache)
        tree = reconstructor.reconstruct_from_events()
        assert tree.path == "cache"
        assert tree.root == replayed.root
        assert event_feed.calls == []
        assert reconstructor.proof_for(BOB).index == 4

    def test_mismatch_keeps_partial_state_entry(self, history, replayed):
        feed = FlakyAccountFeed(accounts_from_replay(replayed), tree_size=replayed.size, fail_skips={2})
        cache = CacheStore()
        root_source = StaticRootSource(replayed.root)
        state = make_reconstructor(feed, root_source, cache=cache, page_size=2, max_workers=1)
        with pytest.raises(FeedUnavailable):
            state.reconstruct()

        truncated = make_reconstructor(
            event_feed=InMemoryEventFeed(history[:-1]), root_source=root_source, cache=cache,
        )
        with pytest.raises(RootMismatchError):
            truncated.reconstruct_from_events()

        entry = cache.get_entry(to_hex(replayed.root))
        assert entry.status is CacheStatus.PARTIAL
        assert entry.leaves == replayed.tree.leaves[:3]

        feed.healthy = True
        assert state.reconstruct().root == replayed.root
        assert cache.lookup(to_hex(replayed.root)) is not None

    def test_requires_event_feed(self, account_feed):
        with pytest.raises(ConfigurationError):
            make_reconstructor(account_feed).reconstruct_from_events()


class TestQueries:

    def test_lazy_reconstruction(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        assert reconstructor.root() == replayed.root
        assert reconstructor.size() == 5

    def test_proof_verifies(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        for account, slot in [(ALICE, 0), (CAROL, 2), (DAVE, 3), (BOB, 4)]:
            proof = reconstructor.proof_for(account)
            assert proof.index == slot
            assert proof.root == replayed.root
            assert reconstructor.verify(proof.root, proof.leaf, proof.siblings)

    def test_absent_account(self, account_feed, root_source):
        reconstructor = make_reconstructor(account_feed, root_source)
        assert reconstructor.proof_for(addr(0xFFFF)) is None
        assert reconstructor.account(addr(0xFFFF)) is None

    def test_account_proof_reads_one_tree(self, account_feed, root_source, monkeypatch):
        reconstructor = make_reconstructor(account_feed, root_source)
        reconstructor.reconstruct()
        reads = []
        current = reconstructor._current

        def counting_current():
            reads.append(1)
            return current()

        monkeypatch.setattr(reconstructor, "_current", counting_current)
        record, proof = reconstructor.account_proof(CAROL)

        assert len(reads) == 1
        assert proof.index == record.slot_index == 2
        assert proof.leaf == pack_leaf(record.account_id, record.weight)
        assert reconstructor.account_proof(addr(0xFFFF)) is None

    def test_queries_without_account_feed(self, event_feed):
        with pytest.raises(ConfigurationError):
            make_reconstructor(event_feed=event_feed).root()

    def test_account_lookup(self, account_feed, root_source):
        reconstructor = make_reconstructor(account_feed, root_source)
        record = reconstructor.account(ALICE.upper().replace("0X", "0x"))
        assert (record.account_id, record.weight, record.slot_index) == (ALICE, 15, 0)

    def test_size_of(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        reconstructor.reconstruct()
        assert reconstructor.size_of(replayed.root) == 5
        assert reconstructor.size_of(12345) is None

    def test_stats(self, account_feed, root_source, replayed):
        reconstructor = make_reconstructor(account_feed, root_source)
        reconstructor.reconstruct()
        stats = reconstructor.stats()
        assert stats["tree"]["root"] == to_hex(replayed.root)
        assert stats["tree"]["account_count"] == 4
        assert stats["cache"]["complete_trees"] == 1

    def test_to_dict(self, account_feed, root_source, replayed):
        data = make_reconstructor(account_feed, root_source).reconstruct().to_dict()
        assert data["root"] == to_hex(replayed.root)
        assert data["root_decimal"] == str(replayed.root)
        assert data["total_weight"] == "30"
        assert data["verified"] is True


class TestFromConfig:

    def test_builds_subgraph_client(self):
        config = make_config()
        config.subgraph.url = "https://subgraph.example/census"
        reconstructor = CensusReconstructor.from_config(config, hasher=HASHER)
        assert reconstructor.account_feed is reconstructor.root_source
        assert reconstructor.source_id == "subgraph:https://subgraph.example/census"
        assert reconstructor.cache is not None

    def test_explicit_feeds_kept(self, account_feed, root_source):
        reconstructor = CensusReconstructor.from_config(
            make_config(), account_feed=account_feed, root_source=root_source, hasher=HASHER,
        )
        assert reconstructor.account_feed is account_feed
        assert reconstructor.event_feed is None

    def test_file_cache(self, tmp_path):
        config = make_config()
        config.cache.backend = "file"
        config.cache.directory = str(tmp_path)
        store = build_cache_store(config.cache)
        store.start_or_resume("0x01")
        assert (tmp_path / "0x01.json").exists()
