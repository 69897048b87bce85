from __future__ import annotations

import asyncio
from typing import Any, Iterable

from locsync.core.config import AppConfig, StatusLabels
from locsync.providers.feishu_bitable.client import BitableClient
from locsync.sync.ports import RecordPage, RemoteTable
from locsync.sync.schema import FIELD_STATUS, FIELD_TYPE_SINGLE_SELECT, RecordDecoder


class FeishuRemoteStore:
    """Async remote store over one Bitable app.

    Every call runs the blocking client in a worker thread, one at a time, so
    the event loop stays free for pause and cancellation.
    """

    def __init__(self, client: BitableClient, *, page_size: int = 500, status_labels: StatusLabels | None = None):
        self.client = client
        self.page_size = page_size
        self.status_labels = status_labels or StatusLabels()

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "FeishuRemoteStore":
        client = BitableClient(
            app_id=cfg.auth.app_id,
            app_secret=cfg.auth.app_secret,
            app_token=cfg.auth.app_token,
            timeout=int(cfg.auth.timeout_sec),
            retry=cfg.retry,
        )
        return cls(client, page_size=cfg.sync.page_size, status_labels=cfg.sync.status_labels)

    async def list_tables(self) -> list[RemoteTable]:
        items = await asyncio.to_thread(self.client.list_tables)
        return [
            RemoteTable(table_id=str(item["table_id"]), name=str(item.get("name") or ""))
            for item in items
            if item.get("table_id")
        ]

    async def create_table(self, name: str, fields: list[dict[str, Any]]) -> str:
        return await asyncio.to_thread(self.client.create_table, name, fields)

    def _field_property(self, name: str, field_type: int) -> dict[str, Any] | None:
        if name == FIELD_STATUS and field_type == FIELD_TYPE_SINGLE_SELECT:
            return RecordDecoder([], self.status_labels).status_field_property()
        return None

    async def ensure_fields_exist(self, table_id: str, required_fields: Iterable[tuple[str, int]]) -> list[str]:
        existing = await asyncio.to_thread(self.client.list_fields, table_id)
        names = {str(f.get("field_name") or "") for f in existing}
        created: list[str] = []
        for name, field_type in required_fields:
            if name in names:
                continue
            await asyncio.to_thread(
                self.client.create_field,
                table_id,
                name,
                field_type,
                self._field_property(name, field_type),
            )
            names.add(name)
            created.append(name)
        return created

    async def list_records_page(self, table_id: str, page_token: str | None = None) -> RecordPage:
        page = await asyncio.to_thread(self.client.list_records, table_id, self.page_size, page_token)
        return RecordPage(items=page["items"], page_token=page["page_token"])

    async def batch_create(self, table_id: str, records: list[dict[str, Any]]) -> int:
        created = await asyncio.to_thread(self.client.batch_create_records, table_id, records)
        return len(created)

    async def batch_update(self, table_id: str, updates: list[tuple[str, dict[str, Any]]]) -> int:
        updated = await asyncio.to_thread(self.client.batch_update_records, table_id, updates)
        return len(updated)

    async def batch_delete(self, table_id: str, record_ids: list[str]) -> int:
        deleted = await asyncio.to_thread(self.client.batch_delete_records, table_id, record_ids)
        return len(deleted)
