"""Remote record field schema and the typed decoder for Bitable records.

The remote table carries `Key`, `Description`, `Status` (single select), one
text column per locale and optional `Review_<locale>` / `ReviewStatus`
columns. The engine reads `Key`, `Status`, the locale columns and
`last_modified_time`; it writes `Key`, the locale columns and, on creation
only, `Status`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from locsync.core.config import StatusLabels
from locsync.core.errors import RecordSchemaError
from locsync.sync.keys import Key

FIELD_KEY = "Key"
FIELD_DESCRIPTION = "Description"
FIELD_STATUS = "Status"
FIELD_REVIEW_STATUS = "ReviewStatus"

# Bitable field type codes.
FIELD_TYPE_TEXT = 1
FIELD_TYPE_SINGLE_SELECT = 3


class Status(str, Enum):
    NOT_STARTED = "not_started"
    IN_TRANSLATION = "in_translation"
    COMPLETED = "completed"


def review_field(locale: str) -> str:
    return f"Review_{locale}"


def required_fields(locales: Iterable[str], include_review: bool = True) -> list[tuple[str, int]]:
    locales = list(locales)
    fields = [
        (FIELD_KEY, FIELD_TYPE_TEXT),
        (FIELD_DESCRIPTION, FIELD_TYPE_TEXT),
        (FIELD_STATUS, FIELD_TYPE_SINGLE_SELECT),
    ]
    if include_review:
        fields.append((FIELD_REVIEW_STATUS, FIELD_TYPE_TEXT))
    fields.extend((code, FIELD_TYPE_TEXT) for code in locales)
    if include_review:
        fields.extend((review_field(code), FIELD_TYPE_TEXT) for code in locales)
    return fields


def cell_text(value: Any) -> str:
    """Flatten a Bitable cell into plain text.

    Text cells come back either as a plain string or as a list of rich-text
    segments (`[{"type": "text", "text": "..."}]`).
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        parts = []
        for seg in value:
            if isinstance(seg, dict):
                parts.append(str(seg.get("text") or ""))
            elif seg is not None:
                parts.append(str(seg))
        return "".join(parts)
    if isinstance(value, dict):
        return str(value.get("text") or value.get("name") or "")
    return str(value)


def _int_or_zero(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class RemoteRecord(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    record_id: str
    key: Key
    status: Status
    texts: dict[str, str] = Field(default_factory=dict)
    last_modified_time: int = 0

    def text(self, locale: str) -> str:
        return self.texts.get(locale, "")


class RecordDecoder:
    def __init__(self, locales: Iterable[str], labels: StatusLabels | None = None):
        self.locales = list(locales)
        self.labels = labels or StatusLabels()
        self._label_by_status = {
            Status.NOT_STARTED: self.labels.not_started,
            Status.IN_TRANSLATION: self.labels.in_translation,
            Status.COMPLETED: self.labels.completed,
        }
        self._status_by_label = {label: status for status, label in self._label_by_status.items()}

    def label(self, status: Status) -> str:
        return self._label_by_status[status]

    def _problems(self, item: Any) -> list[dict[str, str]]:
        if not isinstance(item, dict):
            return [{"record_id": "?", "field": "record", "detail": "not_an_object"}]
        rid = str(item.get("record_id") or "")
        fields = item.get("fields")
        if not rid:
            return [{"record_id": "?", "field": "record_id", "detail": "missing"}]
        if not isinstance(fields, dict):
            return [{"record_id": rid, "field": "fields", "detail": "missing"}]

        problems = []
        if not cell_text(fields.get(FIELD_KEY)).strip():
            problems.append({"record_id": rid, "field": FIELD_KEY, "detail": "missing"})
        status_label = cell_text(fields.get(FIELD_STATUS))
        if not status_label:
            problems.append({"record_id": rid, "field": FIELD_STATUS, "detail": "missing"})
        elif status_label not in self._status_by_label:
            problems.append({"record_id": rid, "field": FIELD_STATUS, "detail": f"unknown_label:{status_label}"})
        return problems

    def _build(self, item: dict[str, Any]) -> RemoteRecord:
        fields = item["fields"]
        texts = {}
        for code in self.locales:
            if code in fields:
                texts[code] = cell_text(fields.get(code))
        return RemoteRecord(
            record_id=str(item["record_id"]),
            # Keep the key exactly as stored; push writes local keys unchanged.
            key=Key(cell_text(fields.get(FIELD_KEY))),
            status=self._status_by_label[cell_text(fields.get(FIELD_STATUS))],
            texts=texts,
            last_modified_time=_int_or_zero(item.get("last_modified_time")),
        )

    def decode_all(self, items: Iterable[dict[str, Any]]) -> list[RemoteRecord]:
        """Decode every item, or raise once listing every invalid record."""
        items = list(items)
        problems: list[dict[str, str]] = []
        for item in items:
            problems.extend(self._problems(item))
        if problems:
            raise RecordSchemaError(problems)
        return [self._build(item) for item in items]

    def record_fields(self, key: Key, texts: dict[str, str], status: Status | None = None) -> dict[str, Any]:
        fields: dict[str, Any] = {FIELD_KEY: key.text}
        if status is not None:
            fields[FIELD_STATUS] = self.label(status)
        for code in self.locales:
            if code in texts:
                fields[code] = texts[code]
        return fields

    def create_table_fields(self) -> list[dict[str, Any]]:
        fields: list[dict[str, Any]] = [
            {"field_name": FIELD_KEY, "type": FIELD_TYPE_TEXT},
            {"field_name": FIELD_DESCRIPTION, "type": FIELD_TYPE_TEXT},
            {"field_name": FIELD_STATUS, "type": FIELD_TYPE_SINGLE_SELECT, "property": self.status_field_property()},
        ]
        fields.extend({"field_name": code, "type": FIELD_TYPE_TEXT} for code in self.locales)
        return fields

    def status_field_property(self) -> dict[str, Any]:
        return {"options": [{"name": self.label(s)} for s in Status]}
