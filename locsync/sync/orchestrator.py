from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from locsync.core.config import AppConfig, StatusLabels
from locsync.core.errors import LocalStoreError
from locsync.core.logging_setup import LogFunc, default_log_func, detail_json
from locsync.sync import planner, remote_index
from locsync.sync.control import SyncControl
from locsync.sync.inventory import LocalInventory, iter_local_rows, log_collisions, resolve_source_locale, scan_local
from locsync.sync.keys import Key
from locsync.sync.mutator import MAX_BATCH_LIMIT, BatchMutator
from locsync.sync.planner import Plan
from locsync.sync.ports import LocalStore, RemoteStore
from locsync.sync.schema import RecordDecoder, RemoteRecord, Status, required_fields


def now_iso():
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class TablePlan:
    table: str
    table_id: str
    inventory: LocalInventory
    plan: Plan


class SyncOrchestrator:
    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        *,
        source_locale: str = "",
        batch_limit: int = MAX_BATCH_LIMIT,
        tables: list[str] | None = None,
        ensure_review_fields: bool = True,
        status_labels: StatusLabels | None = None,
        control: SyncControl | None = None,
        log_func: LogFunc | None = None,
    ):
        self.local = local
        self.remote = remote
        self.source_locale = source_locale
        self.batch_limit = batch_limit
        self.table_filter = list(tables or [])
        self.ensure_review_fields = ensure_review_fields
        self.status_labels = status_labels or StatusLabels()
        self.control = control or SyncControl()
        self.log_func = log_func or default_log_func

        self._remote_tables: dict[str, str] | None = None

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        local: LocalStore,
        remote: RemoteStore,
        control: SyncControl | None = None,
        log_func: LogFunc | None = None,
    ) -> "SyncOrchestrator":
        return cls(
            local,
            remote,
            source_locale=cfg.sync.source_locale,
            batch_limit=cfg.sync.batch_limit,
            tables=cfg.sync.tables,
            ensure_review_fields=cfg.sync.ensure_review_fields,
            status_labels=cfg.sync.status_labels,
            control=control,
            log_func=log_func,
        )

    def _log(self, level: str, module: str, message: str, detail: dict[str, Any] | None = None):
        self.log_func(level, module, message, detail_json(detail) if detail is not None else None)

    def _local_layout(self, table: str | None = None) -> tuple[list[str], list[str]]:
        available = self.local.list_tables()
        if not available:
            raise LocalStoreError("local_store_no_tables")
        locales = self.local.list_locales()
        if not locales:
            raise LocalStoreError("local_store_no_locales")
        resolve_source_locale(locales, self.source_locale)

        # Each run starts from a fresh view of the remote tables.
        self._remote_tables = None
        wanted = [table] if table else (self.table_filter or available)
        missing = [name for name in wanted if name not in available]
        if missing:
            raise LocalStoreError(f"local_table_missing: {missing}")
        return wanted, locales

    def _decoder(self, locales: list[str]) -> RecordDecoder:
        return RecordDecoder(locales, self.status_labels)

    async def _remote_table_ids(self) -> dict[str, str]:
        if self._remote_tables is None:
            tables = await self.remote.list_tables()
            self._remote_tables = {t.name: t.table_id for t in tables}
        return self._remote_tables

    async def _find_table(self, name: str) -> str | None:
        return (await self._remote_table_ids()).get(name)

    async def _ensure_table(self, name: str, decoder: RecordDecoder) -> str:
        table_ids = await self._remote_table_ids()
        table_id = table_ids.get(name)
        if table_id:
            created_fields = await self.remote.ensure_fields_exist(
                table_id,
                required_fields(decoder.locales, include_review=self.ensure_review_fields),
            )
            if created_fields:
                self._log("INFO", "push", "remote_fields_created", {"table": name, "fields": created_fields})
            return table_id

        table_id = await self.remote.create_table(name, decoder.create_table_fields())
        table_ids[name] = table_id
        self._log("INFO", "push", "remote_table_created", {"table": name, "table_id": table_id})
        return table_id

    async def _plan_table(self, table: str, decoder: RecordDecoder, *, ensure_remote: bool = True) -> TablePlan:
        # Read the local side before touching the remote so local errors abort first.
        inventory = scan_local(self.local, table, self.source_locale, self.log_func)
        await self.control.checkpoint(f"plan:{table}")
        if ensure_remote:
            table_id = await self._ensure_table(table, decoder)
        else:
            table_id = await self._find_table(table) or ""
        records: list[RemoteRecord] = []
        if table_id:
            records = await remote_index.fetch_records(self.remote, table_id, decoder, self.control)
        index = remote_index.build(records)
        table_plan = planner.plan(inventory.key_set, inventory.data, index)
        self._log(
            "INFO",
            "plan",
            "plan_ready",
            {"table": table, "table_id": table_id, "remote_total": len(records), **table_plan.counts()},
        )
        return TablePlan(table, table_id, inventory, table_plan)

    async def preview(self, table: str | None = None) -> list[TablePlan]:
        """Compute the push plan of every table without mutating anything."""
        tables, locales = self._local_layout(table)
        decoder = self._decoder(locales)
        return [await self._plan_table(name, decoder, ensure_remote=False) for name in tables]

    async def _apply(self, run_type: str, table_plans: list[TablePlan], decoder: RecordDecoder) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "run_type": run_type,
            "started_at": now_iso(),
            "tables": {},
            "created": 0,
            "updated": 0,
            "deleted": 0,
            "skipped": 0,
        }
        mutator = BatchMutator(
            self.remote,
            decoder,
            batch_limit=self.batch_limit,
            control=self.control,
            log_func=self.log_func,
        )
        for tp in table_plans:
            if not tp.table_id:
                self._log("WARNING", run_type, "remote_table_missing", {"table": tp.table})
                continue
            plan = tp.plan.deletes_only() if run_type == "prune" else tp.plan
            applied = await mutator.apply(tp.table_id, plan)
            summary["tables"][tp.table] = {
                "table_id": tp.table_id,
                "plan": plan.counts(),
                "applied": applied.as_dict(),
            }
            summary["created"] += applied.created
            summary["updated"] += applied.updated
            summary["deleted"] += applied.deleted
            summary["skipped"] += len(plan.skip)
            self._log("INFO", run_type, "table_done", {"table": tp.table, **applied.as_dict()})
        summary["finished_at"] = now_iso()
        return summary

    async def _run_push(self, run_type: str, table: str | None) -> dict[str, Any]:
        try:
            tables, locales = self._local_layout(table)
            decoder = self._decoder(locales)
            # Plan every table before the first mutation so a conflict in any
            # table aborts the run with nothing written.
            table_plans = [
                await self._plan_table(name, decoder, ensure_remote=run_type != "prune")
                for name in tables
            ]
            summary = await self._apply(run_type, table_plans, decoder)
        except Exception as e:
            self._log("ERROR", run_type, "run_failed", {"error": str(e), "type": type(e).__name__})
            raise
        self._log("INFO", run_type, "run_success", summary)
        return summary

    async def push(self, table: str | None = None) -> dict[str, Any]:
        return await self._run_push("push", table)

    async def prune(self, table: str | None = None) -> dict[str, Any]:
        """Delete orphaned and duplicate remote records only."""
        return await self._run_push("prune", table)

    async def _pull_table(self, table: str, locales: list[str], decoder: RecordDecoder) -> dict[str, Any] | None:
        table_id = await self._find_table(table)
        if not table_id:
            self._log("WARNING", "pull", "remote_table_missing", {"table": table})
            return None

        records = await remote_index.fetch_records(self.remote, table_id, decoder, self.control)
        completed = newest_completed(records)

        current: dict[Key, tuple[str, dict[str, str]]] = {}
        collisions: dict[str, list[str]] = {}
        for key, raw_key, locale, text in iter_local_rows(self.local, table, collisions):
            current.setdefault(key, (raw_key, {}))[1][locale] = text
        log_collisions(self.log_func, "pull", table, collisions)

        keys_updated = 0
        entries_written = 0
        for key, record in completed.items():
            display, values = current.get(key, (record.key.text, {}))
            changed = False
            for locale in locales:
                remote_value = record.text(locale)
                if values.get(locale, "") == remote_value:
                    continue
                self.local.write_entry(table, display, locale, remote_value)
                entries_written += 1
                changed = True
            if changed:
                keys_updated += 1

        self._log(
            "INFO",
            "pull",
            "table_done",
            {"table": table, "records": len(records), "completed": len(completed), "keys_updated": keys_updated},
        )
        return {
            "table_id": table_id,
            "records": len(records),
            "completed": len(completed),
            "keys_updated": keys_updated,
            "entries_written": entries_written,
        }

    async def pull(self, table: str | None = None) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "run_type": "pull",
            "started_at": now_iso(),
            "tables": {},
            "tables_missing": [],
            "keys_updated": 0,
            "entries_written": 0,
        }
        try:
            tables, locales = self._local_layout(table)
            decoder = self._decoder(locales)
            for name in tables:
                await self.control.checkpoint(f"pull:{name}")
                result = await self._pull_table(name, locales, decoder)
                if result is None:
                    summary["tables_missing"].append(name)
                    continue
                summary["tables"][name] = result
                summary["keys_updated"] += result["keys_updated"]
                summary["entries_written"] += result["entries_written"]
        except Exception as e:
            self._log("ERROR", "pull", "run_failed", {"error": str(e), "type": type(e).__name__})
            raise
        summary["finished_at"] = now_iso()
        self._log("INFO", "pull", "run_success", summary)
        return summary

    async def sync(self, table: str | None = None) -> dict[str, Any]:
        """Push local changes, then pull completed translations in the same run."""
        started_at = now_iso()
        push_summary = await self.push(table)
        # Records created by the push are NotStarted, so the pull below cannot
        # overwrite local text with them; it only picks up completed records.
        pull_summary = await self.pull(table)
        return {
            "run_type": "sync",
            "started_at": started_at,
            "finished_at": now_iso(),
            "push": push_summary,
            "pull": pull_summary,
        }


def newest_completed(records: list[RemoteRecord]) -> dict[Key, RemoteRecord]:
    """Completed records by key; among completed duplicates the newest one wins."""
    best: dict[Key, RemoteRecord] = {}
    for record in records:
        if record.status != Status.COMPLETED:
            continue
        seen = best.get(record.key)
        if seen is None or record.last_modified_time > seen.last_modified_time:
            best[record.key] = record
    return best
