from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from locsync.core.errors import LocalStoreError
from locsync.core.logging_setup import LogFunc, default_log_func, detail_json
from locsync.sync.keys import Key
from locsync.sync.ports import LocalStore


@dataclass
class LocalInventory:
    key_set: set[Key] = field(default_factory=set)
    data: dict[Key, dict[str, str]] = field(default_factory=dict)
    # first spelling -> later spellings of the same key that were skipped
    collisions: dict[str, list[str]] = field(default_factory=dict)


def resolve_source_locale(locales: list[str], configured: str = "") -> str:
    if configured:
        if configured not in locales:
            raise LocalStoreError(f"source_locale_not_configured: {configured} not in {locales}")
        return configured
    return locales[0]


def iter_local_rows(
    store: LocalStore,
    table: str,
    collisions: dict[str, list[str]],
) -> Iterator[tuple[Key, str, str, str]]:
    """Yield `(key, spelling, locale, text)` for every entry row of one table.

    Keys compare case-insensitively, so the first spelling seen wins; rows of a
    later spelling of the same key are dropped and recorded in `collisions`.
    """
    spelling: dict[Key, str] = {}
    for raw_key, locale, text in store.scan_entries(table):
        if not raw_key:
            continue
        key = Key(raw_key)
        first = spelling.setdefault(key, raw_key)
        if raw_key != first:
            skipped = collisions.setdefault(first, [])
            if raw_key not in skipped:
                skipped.append(raw_key)
            continue
        yield key, raw_key, locale, text or ""


def log_collisions(log_func: LogFunc, module: str, table: str, collisions: dict[str, list[str]]):
    for first, skipped in collisions.items():
        log_func(
            "WARNING",
            module,
            "local_key_case_collision",
            detail_json({"table": table, "key": first, "skipped": skipped}),
        )


def scan_local(
    store: LocalStore,
    table: str,
    source_locale: str = "",
    log_func: LogFunc | None = None,
) -> LocalInventory:
    """Read one local table into the key set and the propagatable texts.

    The key set holds every key present in the table and decides which remote
    records are orphaned. The data map only holds keys with non-empty source
    text, and within each key only non-empty locale texts.
    """
    tables = store.list_tables()
    if not tables:
        raise LocalStoreError("local_store_no_tables")
    if table not in tables:
        raise LocalStoreError(f"local_table_missing: {table}")
    locales = store.list_locales()
    if not locales:
        raise LocalStoreError("local_store_no_locales")
    source = resolve_source_locale(locales, source_locale)
    wanted = set(locales)

    inventory = LocalInventory()
    texts: dict[Key, dict[str, str]] = {}
    for key, _spelling, locale, text in iter_local_rows(store, table, inventory.collisions):
        inventory.key_set.add(key)
        if locale not in wanted or not text:
            continue
        texts.setdefault(key, {})[locale] = text

    inventory.data = {key: values for key, values in texts.items() if values.get(source)}
    log_collisions(log_func or default_log_func, "inventory", table, inventory.collisions)
    return inventory
