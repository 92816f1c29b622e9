# dealscout/watch/snapshots.py
"""
Per-watchlist snapshots and the diff that decides whether anything is worth an alert.

A snapshot is the full set of threshold-passing items from the latest cycle,
keyed by canonical url (no query string or fragment). Only score, risk, price
and cap_rate are tracked; a title change alone is not a change.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from dealscout.core.errors import SnapshotUnreadable
from dealscout.core.search.urls import canonical_url
from dealscout.schemas.models import DiffResult, Snapshot, SnapshotItem
from dealscout.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


def _by_url(items: Sequence[SnapshotItem]) -> dict[str, SnapshotItem]:
    out: dict[str, SnapshotItem] = {}
    for item in items:
        out[canonical_url(item.url)] = item  # last one wins on duplicate urls
    return out


def diff_snapshots(prior: Snapshot | None, next_items: Sequence[SnapshotItem]) -> DiffResult:
    """
    Compare the latest items against the prior snapshot.

      new      canonical url absent from prior
      changed  canonical url present, any tracked field differs
      removed  prior url whose canonical form is absent from next

    With no prior snapshot every item is new. The three sets are disjoint.
    """
    current = _by_url(next_items)
    previous = _by_url(prior.items) if prior is not None else {}

    new_items: list[SnapshotItem] = []
    changed_items: list[SnapshotItem] = []
    for key, item in current.items():
        old = previous.get(key)
        if old is None:
            new_items.append(item)
        elif old.tracked() != item.tracked():
            changed_items.append(item)

    removed = [old.url for key, old in previous.items() if key not in current]
    return DiffResult(new_items=new_items, changed_items=changed_items, removed_urls=removed)


class SnapshotStore:
    """Snapshot persistence over a KeyValueStore, one record per watchlist."""

    namespace = "snapshots"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def key(self, watch_id: str) -> str:
        return f"{self.namespace}/{watch_id}"

    def load(self, watch_id: str) -> Snapshot | None:
        try:
            data = self.store.get(self.key(watch_id))
        except (json.JSONDecodeError, ValueError, OSError) as e:
            raise SnapshotUnreadable(f"snapshot for {watch_id!r} unreadable: {e}") from e
        if data is None:
            return None
        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotUnreadable(f"snapshot for {watch_id!r} invalid: {e}") from e

    def save(self, snapshot: Snapshot) -> None:
        self.store.put(self.key(snapshot.watch_id), snapshot.model_dump(mode="json"))
        logger.debug("Saved snapshot %s (%d items)", snapshot.watch_id, len(snapshot.items))

    def delete(self, watch_id: str) -> bool:
        return self.store.delete(self.key(watch_id))


__all__ = ["SnapshotStore", "diff_snapshots"]
