from __future__ import annotations

from typing import Any


class LocSyncError(RuntimeError):
    """Base class for every error the sync engine raises on purpose."""


class LocalStoreError(LocSyncError):
    pass


class RemoteApiError(LocSyncError):
    def __init__(self, message: str, *, code: int | None = None, operation: str | None = None):
        super().__init__(message)
        self.code = code
        self.operation = operation


class ConflictError(LocSyncError):
    """Duplicate records for one key where at least one is being translated.

    Carries the key and every record id of the group so a human can resolve it
    in the remote table before the next run.
    """

    def __init__(self, key: str, record_ids: list[str], in_translation_ids: list[str]):
        self.key = key
        self.record_ids = list(record_ids)
        self.in_translation_ids = list(in_translation_ids)
        lines = [f"duplicate_key_in_translation: key={key!r}"]
        lines.extend(f"record_id={rid}" for rid in self.in_translation_ids)
        super().__init__("\n".join(lines))

    def as_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "record_ids": self.record_ids,
            "in_translation_ids": self.in_translation_ids,
        }


class RecordSchemaError(LocSyncError):
    def __init__(self, problems: list[dict[str, str]]):
        self.problems = list(problems)
        summary = ", ".join(f"{p['record_id']}:{p['field']}" for p in self.problems[:20])
        more = "" if len(self.problems) <= 20 else f" (+{len(self.problems) - 20} more)"
        super().__init__(f"invalid_remote_records: {summary}{more}")


class PlanInvariantError(LocSyncError):
    pass


class SyncCancelled(LocSyncError):
    pass
