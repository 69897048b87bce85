"""Reconciliation of local keys against the remote primary records.

The planner is pure: it reads the local inventory and the remote index and
returns a Plan. Nothing here talks to either store.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from locsync.core.errors import PlanInvariantError
from locsync.sync.keys import Key
from locsync.sync.remote_index import RemoteIndex
from locsync.sync.schema import Status

SKIP_IN_PROGRESS = "in_progress"
SKIP_COMPLETED = "completed"
SKIP_UNCHANGED = "unchanged"
SKIP_EMPTY_SOURCE = "empty_source"

DELETE_ORPHANED = "orphaned"
DELETE_DUPLICATE = "duplicate"


@dataclass
class CreateItem:
    key: Key
    texts: dict[str, str]
    status: Status = Status.NOT_STARTED


@dataclass
class UpdateItem:
    key: Key
    record_id: str
    texts: dict[str, str]


@dataclass
class DeleteItem:
    record_id: str
    key: Key
    reason: str


@dataclass
class Plan:
    create: dict[Key, CreateItem] = field(default_factory=dict)
    update: dict[Key, UpdateItem] = field(default_factory=dict)
    delete: dict[str, DeleteItem] = field(default_factory=dict)
    skip: dict[Key, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)

    def counts(self) -> dict[str, int]:
        return {
            "create": len(self.create),
            "update": len(self.update),
            "delete": len(self.delete),
            "skip": len(self.skip),
        }

    def deletes_only(self) -> "Plan":
        return Plan(delete=dict(self.delete))

    def validate(self):
        create_keys = set(self.create)
        update_keys = set(self.update)
        skip_keys = set(self.skip)
        overlap = (create_keys & update_keys) | (create_keys & skip_keys) | (update_keys & skip_keys)
        if overlap:
            raise PlanInvariantError(f"plan_key_overlap: {sorted(k.text for k in overlap)}")

        orphan_keys = {item.key for item in self.delete.values() if item.reason == DELETE_ORPHANED}
        clash = (create_keys | update_keys | skip_keys) & orphan_keys
        if clash:
            raise PlanInvariantError(f"plan_orphan_overlap: {sorted(k.text for k in clash)}")

        updated_ids = {item.record_id for item in self.update.values()}
        clash_ids = updated_ids & set(self.delete)
        if clash_ids:
            raise PlanInvariantError(f"plan_record_overlap: {sorted(clash_ids)}")


def _differs(local_texts: dict[str, str], remote_texts: dict[str, str]) -> bool:
    # Only locales with local text take part; an empty local cell never blanks a remote one.
    for locale, text in local_texts.items():
        if remote_texts.get(locale, "") != text:
            return True
    return False


def plan(local_keys: set[Key], local_data: dict[Key, dict[str, str]], index: RemoteIndex) -> Plan:
    result = Plan()

    for key in sorted(local_keys, key=lambda k: k.folded):
        texts = local_data.get(key)
        record = index.primary.get(key)

        if record is None:
            if not texts:
                result.skip[key] = SKIP_EMPTY_SOURCE
                continue
            result.create[key] = CreateItem(key=key, texts=dict(texts))
            continue

        if record.status == Status.IN_TRANSLATION:
            result.skip[key] = SKIP_IN_PROGRESS
        elif record.status == Status.COMPLETED:
            result.skip[key] = SKIP_COMPLETED
        elif not texts:
            result.skip[key] = SKIP_EMPTY_SOURCE
        elif _differs(texts, record.texts):
            result.update[key] = UpdateItem(key=key, record_id=record.record_id, texts=dict(texts))
        else:
            result.skip[key] = SKIP_UNCHANGED

    for key, record in index.primary.items():
        if key in local_keys or record.status == Status.IN_TRANSLATION:
            continue
        result.delete[record.record_id] = DeleteItem(record.record_id, record.key, DELETE_ORPHANED)

    for record_id in index.to_delete_as_duplicate:
        key = index.duplicate_keys.get(record_id, Key(""))
        result.delete[record_id] = DeleteItem(record_id, key, DELETE_DUPLICATE)

    result.validate()
    return result
