"""
Census Feeds - Subgraph Client

GraphQL client for the census subgraph (The Graph). Implements
RootSource, AccountFeed and EventFeed.

Every call is a single attempt. Transport errors, non-200 responses and
GraphQL `errors` raise FeedUnavailable (retryable); payloads that do not
have the expected shape raise FeedDataError.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError

from census.crypto.hashing import parse_field_element
from census.http.client import HttpClient, HttpError
from census.merkle.codec import normalize_account_id
from census.schemas.errors import EncodingError, FeedDataError, FeedUnavailable
from census.schemas.models import (
    ABSENT_SLOT,
    AccountRecord,
    BlockRef,
    CensusRootRecord,
    GlobalStats,
    WeightChangeEvent,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

SOURCE_NAME = "subgraph"

ACCOUNT_FIELDS = """
      id
      address
      weight
      lastUpdatedAt
      lastUpdatedBlock
      firstInsertedBlock
      firstInsertedAt
      treeIndex
"""

ACCOUNTS_QUERY = """
  query GetAccounts($first: Int!, $skip: Int!) {
    accounts(
      first: $first
      skip: $skip
      orderBy: treeIndex
      orderDirection: asc
      where: { weight_gt: "0" }
    ) {%s}
  }
""" % ACCOUNT_FIELDS

ACCOUNT_QUERY = """
  query GetAccount($id: ID!) {
    account(id: $id) {%s}
  }
""" % ACCOUNT_FIELDS

WEIGHT_CHANGE_EVENTS_QUERY = """
  query GetWeightChangeEvents($first: Int!, $skip: Int!) {
    weightChangeEvents(
      first: $first
      skip: $skip
      orderBy: blockNumber
      orderDirection: asc
    ) {
      id
      account {
        id
        address
      }
      previousWeight
      newWeight
      blockNumber
      blockTimestamp
      transactionHash
      logIndex
    }
  }
"""

CENSUS_ROOTS_QUERY = """
  query GetCensusRoots($first: Int!, $skip: Int!) {
    censusRoots(
      first: $first
      skip: $skip
      orderBy: blockNumber
      orderDirection: desc
    ) {
      id
      root
      updater
      blockNumber
      blockTimestamp
      transactionHash
    }
  }
"""

CENSUS_ROOT_LOOKUP_QUERY = """
  query FindCensusRoot($root: BigInt!) {
    censusRoots(
      first: 1
      where: { root: $root }
      orderBy: blockNumber
      orderDirection: asc
    ) {
      id
      root
      updater
      blockNumber
      blockTimestamp
      transactionHash
    }
  }
"""

GLOBAL_STATS_QUERY = """
  query GetGlobalStats {
    globalStats(id: "global") {
      totalAccounts
      totalWeight
      nextTreeIndex
      lastUpdatedAt
    }
  }
"""


def _opt_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


class SubgraphClient:
    """
    Census subgraph client.

    Usage:
        client = SubgraphClient("https://api.studio.thegraph.com/query/.../census/v1")
        root = client.current_root()
        page = client.fetch_accounts(first=100, skip=0)
    """

    def __init__(
        self,
        url: str,
        *,
        http: Optional[HttpClient] = None,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        if not url:
            raise ValueError("subgraph url is required")
        self.url = url
        self._http = http or HttpClient(
            timeout=timeout,
            default_headers={"Content-Type": "application/json", **(headers or {})},
        )

    @property
    def source_id(self) -> str:
        return f"{SOURCE_NAME}:{self.url}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def query(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Execute a GraphQL query and return its `data` object.

        Raises:
            FeedUnavailable: Transport failure, non-200 status, GraphQL errors
            FeedDataError: Response is not a GraphQL JSON document
        """
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        try:
            response = self._http.post(self.url, json=body)
        except HttpError as e:
            raise FeedUnavailable(f"Subgraph request failed: {e}", source=self.url) from e

        if response.status_code != 200:
            raise FeedUnavailable(
                f"Subgraph returned HTTP {response.status_code}: {response.text[:200]}",
                source=self.url,
                details={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FeedDataError(f"Subgraph returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise FeedDataError("Subgraph response is not a JSON object")

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message", str(first)) if isinstance(first, dict) else str(first)
            raise FeedUnavailable(f"GraphQL error: {message}", source=self.url)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise FeedDataError("Subgraph response has no data object")
        return data

    def _parse(self, kind: str, parse: Callable[[], T]) -> T:
        try:
            return parse()
        except (ValidationError, EncodingError, KeyError, TypeError, ValueError) as e:
            raise FeedDataError(f"Malformed {kind} in subgraph response: {e}") from e

    def _list(self, data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        items = data.get(key)
        if not isinstance(items, list):
            raise FeedDataError(f"Subgraph response field {key!r} is not a list")
        return items

    # ------------------------------------------------------------------
    # AccountFeed
    # ------------------------------------------------------------------

    def fetch_accounts(self, first: int, skip: int) -> list[AccountRecord]:
        data = self.query(ACCOUNTS_QUERY, {"first": first, "skip": skip})
        items = self._list(data, "accounts")
        records = [self._parse("account", lambda item=item: self._to_account(item)) for item in items]
        logger.debug(f"Fetched {len(records)} accounts (skip={skip})")
        return records

    def tree_size(self) -> Optional[int]:
        stats = self.global_stats()
        return stats.next_tree_index if stats else None

    def get_account(self, account_id: str) -> Optional[AccountRecord]:
        data = self.query(ACCOUNT_QUERY, {"id": normalize_account_id(account_id)})
        item = data.get("account")
        if item is None:
            return None
        return self._parse("account", lambda: self._to_account(item))

    def global_stats(self) -> Optional[GlobalStats]:
        data = self.query(GLOBAL_STATS_QUERY)
        item = data.get("globalStats")
        if item is None:
            return None
        return self._parse("globalStats", lambda: GlobalStats(
            total_accounts=_opt_int(item.get("totalAccounts")) or 0,
            total_weight=_opt_int(item.get("totalWeight")) or 0,
            next_tree_index=_opt_int(item.get("nextTreeIndex")),
            last_updated_at=_opt_int(item.get("lastUpdatedAt")),
        ))

    # ------------------------------------------------------------------
    # EventFeed
    # ------------------------------------------------------------------

    def fetch_events(self, first: int, skip: int) -> list[WeightChangeEvent]:
        data = self.query(WEIGHT_CHANGE_EVENTS_QUERY, {"first": first, "skip": skip})
        items = self._list(data, "weightChangeEvents")
        events = [self._parse("weightChangeEvent", lambda item=item: self._to_event(item)) for item in items]
        logger.debug(f"Fetched {len(events)} weight change events (skip={skip})")
        return events

    # ------------------------------------------------------------------
    # RootSource
    # ------------------------------------------------------------------

    def census_roots(self, first: int = 10, skip: int = 0) -> list[CensusRootRecord]:
        """Published roots, newest first."""
        data = self.query(CENSUS_ROOTS_QUERY, {"first": first, "skip": skip})
        return [
            self._parse("censusRoot", lambda item=item: self._to_root(item))
            for item in self._list(data, "censusRoots")
        ]

    def current_root(self) -> int:
        roots = self.census_roots(first=1)
        if not roots:
            logger.info("No census root published yet; using empty root")
            return 0
        return roots[0].root

    def root_was_valid_at(self, root: int) -> Optional[BlockRef]:
        data = self.query(CENSUS_ROOT_LOOKUP_QUERY, {"root": str(root)})
        items = self._list(data, "censusRoots")
        if not items:
            return None
        return self._parse("censusRoot", lambda: self._to_root(items[0])).to_block_ref()

    # ------------------------------------------------------------------
    # Record mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_account(item: dict[str, Any]) -> AccountRecord:
        tree_index = _opt_int(item.get("treeIndex"))
        return AccountRecord(
            account_id=item.get("address") or item["id"],
            weight=int(item["weight"]),
            slot_index=tree_index if tree_index is not None else ABSENT_SLOT,
            first_inserted_block=_opt_int(item.get("firstInsertedBlock")),
            first_inserted_at=_opt_int(item.get("firstInsertedAt")),
            last_updated_block=_opt_int(item.get("lastUpdatedBlock")),
        )

    @staticmethod
    def _to_event(item: dict[str, Any]) -> WeightChangeEvent:
        account = item["account"]
        return WeightChangeEvent(
            account_id=account.get("address") or account["id"],
            previous_weight=int(item["previousWeight"]),
            new_weight=int(item["newWeight"]),
            block_number=int(item["blockNumber"]),
            log_index=_opt_int(item.get("logIndex")) or 0,
            block_timestamp=_opt_int(item.get("blockTimestamp")),
            transaction_hash=item.get("transactionHash"),
            event_id=item.get("id"),
        )

    @staticmethod
    def _to_root(item: dict[str, Any]) -> CensusRootRecord:
        return CensusRootRecord(
            root=parse_field_element(item["root"]),
            block_number=int(item["blockNumber"]),
            block_timestamp=_opt_int(item.get("blockTimestamp")),
            transaction_hash=item.get("transactionHash"),
            updater=item.get("updater"),
        )

    def close(self) -> None:
        self._http.close()


__all__ = [
    "SubgraphClient",
    "ACCOUNTS_QUERY",
    "ACCOUNT_QUERY",
    "WEIGHT_CHANGE_EVENTS_QUERY",
    "CENSUS_ROOTS_QUERY",
    "CENSUS_ROOT_LOOKUP_QUERY",
    "GLOBAL_STATS_QUERY",
]
