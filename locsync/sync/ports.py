"""Collaborator interfaces the sync engine is constructed with."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Protocol

from pydantic import BaseModel, Field


class RecordPage(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    # None or "" means this was the last page.
    page_token: str | None = None


class RemoteTable(BaseModel):
    table_id: str
    name: str


class LocalStore(Protocol):
    def list_tables(self) -> list[str]: ...

    def list_locales(self) -> list[str]: ...

    def scan_entries(self, table: str) -> Iterator[tuple[str, str, str]]: ...

    def write_entry(self, table: str, key: str, locale: str, text: str) -> None: ...


class RemoteStore(Protocol):
    async def list_tables(self) -> list[RemoteTable]: ...

    async def create_table(self, name: str, fields: list[dict[str, Any]]) -> str: ...

    async def ensure_fields_exist(self, table_id: str, required_fields: Iterable[tuple[str, int]]) -> list[str]: ...

    async def list_records_page(self, table_id: str, page_token: str | None = None) -> RecordPage: ...

    async def batch_create(self, table_id: str, records: list[dict[str, Any]]) -> int: ...

    async def batch_update(self, table_id: str, updates: list[tuple[str, dict[str, Any]]]) -> int: ...

    async def batch_delete(self, table_id: str, record_ids: list[str]) -> int: ...
