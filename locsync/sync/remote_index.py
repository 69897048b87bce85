from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from locsync.core.errors import ConflictError, RemoteApiError
from locsync.sync.control import SyncControl
from locsync.sync.keys import Key
from locsync.sync.ports import RemoteStore
from locsync.sync.schema import RecordDecoder, RemoteRecord, Status

# Guard against a remote that keeps handing back the same continuation token.
MAX_PAGES = 10000


@dataclass
class RemoteIndex:
    primary: dict[Key, RemoteRecord] = field(default_factory=dict)
    to_delete_as_duplicate: list[str] = field(default_factory=list)
    # record_id -> key of every duplicate marked for deletion
    duplicate_keys: dict[str, Key] = field(default_factory=dict)


async def fetch_raw_records(
    remote: RemoteStore,
    table_id: str,
    control: SyncControl | None = None,
) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    page_token: str | None = None
    seen_tokens: set[str] = set()
    for _ in range(MAX_PAGES):
        if control is not None:
            await control.checkpoint(f"fetch:{table_id}")
        page = await remote.list_records_page(table_id, page_token)
        items.extend(page.items)
        page_token = page.page_token or None
        if not page_token:
            return items
        if page_token in seen_tokens:
            raise RemoteApiError(f"list_records_page_token_loop: {page_token}", operation="list_records")
        seen_tokens.add(page_token)
    raise RemoteApiError(f"list_records_too_many_pages: >{MAX_PAGES}", operation="list_records")


async def fetch_records(
    remote: RemoteStore,
    table_id: str,
    decoder: RecordDecoder,
    control: SyncControl | None = None,
) -> list[RemoteRecord]:
    return decoder.decode_all(await fetch_raw_records(remote, table_id, control))


def group_by_key(records: list[RemoteRecord]) -> dict[Key, list[RemoteRecord]]:
    groups: dict[Key, list[RemoteRecord]] = {}
    for record in records:
        groups.setdefault(record.key, []).append(record)
    return groups


def build(records: list[RemoteRecord]) -> RemoteIndex:
    """Pick one primary record per key and mark the other duplicates for deletion.

    The newest record (by `last_modified_time`, absent counts as 0) wins. A
    duplicate group with a record in translation cannot be resolved
    automatically and raises `ConflictError` without returning anything.
    """
    groups = group_by_key(records)

    for key, members in groups.items():
        if len(members) <= 1:
            continue
        translating = [r.record_id for r in members if r.status == Status.IN_TRANSLATION]
        if translating:
            raise ConflictError(key.text, [r.record_id for r in members], translating)

    index = RemoteIndex()
    for key, members in groups.items():
        if len(members) == 1:
            index.primary[key] = members[0]
            continue
        ordered = sorted(members, key=lambda r: r.last_modified_time, reverse=True)
        index.primary[key] = ordered[0]
        for victim in ordered[1:]:
            index.to_delete_as_duplicate.append(victim.record_id)
            index.duplicate_keys[victim.record_id] = key
    return index
