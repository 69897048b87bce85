from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, TypeVar

from locsync.core.logging_setup import LogFunc, default_log_func, detail_json
from locsync.sync.control import SyncControl
from locsync.sync.planner import Plan
from locsync.sync.ports import RemoteStore
from locsync.sync.schema import RecordDecoder

MAX_BATCH_LIMIT = 500

T = TypeVar("T")


def chunked(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


@dataclass
class MutationResult:
    deleted: int = 0
    created: int = 0
    updated: int = 0
    batches: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "deleted": self.deleted,
            "created": self.created,
            "updated": self.updated,
            "batches": self.batches,
        }


class BatchMutator:
    """Applies a Plan to one remote table, one bounded batch at a time.

    Batches run strictly in sequence: deletes, then creates, then updates. A
    failing batch raises out of `apply`; batches issued before it stay applied.
    """

    def __init__(
        self,
        remote: RemoteStore,
        decoder: RecordDecoder,
        *,
        batch_limit: int = MAX_BATCH_LIMIT,
        control: SyncControl | None = None,
        log_func: LogFunc | None = None,
    ):
        if not 1 <= batch_limit <= MAX_BATCH_LIMIT:
            raise ValueError(f"batch_limit must be within 1..{MAX_BATCH_LIMIT}, got {batch_limit}")
        self.remote = remote
        self.decoder = decoder
        self.batch_limit = batch_limit
        self.control = control
        self.log_func = log_func or default_log_func

    def _log(self, level: str, message: str, detail: dict[str, Any] | None = None):
        self.log_func(level, "mutator", message, detail_json(detail) if detail is not None else None)

    async def _checkpoint(self, where: str):
        if self.control is not None:
            await self.control.checkpoint(where)

    async def apply(self, table_id: str, plan: Plan) -> MutationResult:
        result = MutationResult()

        delete_ids = list(plan.delete)
        batches = list(chunked(delete_ids, self.batch_limit))
        for i, batch in enumerate(batches, start=1):
            await self._checkpoint(f"delete:{i}")
            self._log("INFO", "batch_delete", {"table_id": table_id, "batch": f"{i}/{len(batches)}", "size": len(batch)})
            deleted = await self.remote.batch_delete(table_id, batch)
            if deleted < len(batch):
                self._log("WARNING", "batch_delete_partial", {"table_id": table_id, "failed": len(batch) - deleted})
            result.deleted += deleted
            result.batches += 1

        creates = [
            self.decoder.record_fields(item.key, item.texts, status=item.status)
            for item in plan.create.values()
        ]
        batches = list(chunked(creates, self.batch_limit))
        for i, batch in enumerate(batches, start=1):
            await self._checkpoint(f"create:{i}")
            self._log("INFO", "batch_create", {"table_id": table_id, "batch": f"{i}/{len(batches)}", "size": len(batch)})
            result.created += await self.remote.batch_create(table_id, batch)
            result.batches += 1

        updates = [
            (item.record_id, self.decoder.record_fields(item.key, item.texts))
            for item in plan.update.values()
        ]
        batches = list(chunked(updates, self.batch_limit))
        for i, batch in enumerate(batches, start=1):
            await self._checkpoint(f"update:{i}")
            self._log("INFO", "batch_update", {"table_id": table_id, "batch": f"{i}/{len(batches)}", "size": len(batch)})
            result.updated += await self.remote.batch_update(table_id, batch)
            result.batches += 1

        return result
