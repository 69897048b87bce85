from __future__ import annotations

import time
from typing import Any

import requests

from locsync.core.errors import RemoteApiError
from locsync.core.retry import RetryPolicy

BASE = "https://open.feishu.cn/open-apis"

# Refresh the tenant token this many seconds before Feishu says it expires.
TOKEN_EXPIRY_MARGIN_SEC = 300


class BitableClient:
    """Blocking client for one Feishu Bitable app (`app_token`)."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        app_token: str,
        timeout: int = 30,
        retry: RetryPolicy | None = None,
        session: requests.Session | None = None,
    ):
        self.app_id = app_id or ""
        self.app_secret = app_secret or ""
        self.app_token = app_token or ""
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.session = session or requests.Session()

        self._tenant_token: str | None = None
        self._tenant_token_expire_at = 0.0

    def _fetch_tenant_access_token(self) -> tuple[str, int]:
        try:
            res = self.session.post(
                f"{BASE}/auth/v3/tenant_access_token/internal",
                json={"app_id": self.app_id, "app_secret": self.app_secret},
                timeout=self.timeout,
            )
            data_raw = res.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteApiError(f"tenant_token_request_failed: {e}", operation="tenant_access_token") from e
        data = data_raw if isinstance(data_raw, dict) else {}
        if data.get("code") != 0:
            raise RemoteApiError(
                f"tenant_token_failed: code={data.get('code')} msg={data.get('msg')}",
                code=data.get("code"),
                operation="tenant_access_token",
            )
        token = data.get("tenant_access_token")
        if not isinstance(token, str) or not token:
            raise RemoteApiError("tenant_token_missing", operation="tenant_access_token")
        return token, int(data.get("expire", 7200))

    def tenant_access_token(self, force: bool = False) -> str:
        if not self.app_id or not self.app_secret:
            raise RemoteApiError("auth_incomplete", operation="tenant_access_token")
        if not force and self._tenant_token and time.time() < self._tenant_token_expire_at:
            return self._tenant_token

        # Token acquisition is idempotent, so it is the one call retried here.
        token, expire = self.retry.call(
            self._fetch_tenant_access_token,
            retry_on=(RemoteApiError,),
            label="tenant_access_token",
        )
        self._tenant_token = token
        self._tenant_token_expire_at = time.time() + max(expire - TOKEN_EXPIRY_MARGIN_SEC, 60)
        return token

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.tenant_access_token()}",
            "Content-Type": "application/json; charset=utf-8",
        }

    def _check_data(self, payload: Any, operation: str) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise RemoteApiError("invalid_response", operation=operation)
        if payload.get("code", 0) != 0:
            raise RemoteApiError(
                f"feishu_error: code={payload.get('code')} msg={payload.get('msg')}",
                code=payload.get("code"),
                operation=operation,
            )
        data = payload.get("data", {}) or {}
        if not isinstance(data, dict):
            raise RemoteApiError("invalid_response_data", operation=operation)
        return data

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.app_token:
            raise RemoteApiError("app_token_missing", operation=operation)
        try:
            res = self.session.request(
                method,
                f"{BASE}/bitable/v1/apps/{self.app_token}{path}",
                params=params,
                json=json_body,
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteApiError(f"{operation}_request_failed: {e}", operation=operation) from e

        try:
            payload = res.json()
        except ValueError:
            text = (res.text or "").strip()
            raise RemoteApiError(
                f"{operation}_non_json_response_status_{res.status_code}: {text[:200]}",
                operation=operation,
            ) from None
        if res.status_code >= 400 and isinstance(payload, dict) and payload.get("code", 0) == 0:
            raise RemoteApiError(f"{operation}_failed_status_{res.status_code}", operation=operation)
        return self._check_data(payload, operation)

    def list_tables(self) -> list[dict[str, Any]]:
        page_token: str | None = None
        items: list[dict[str, Any]] = []
        while True:
            params: dict[str, Any] = {"page_size": 100}
            if page_token:
                params["page_token"] = page_token
            data = self._request("GET", "/tables", "list_tables", params=params)
            items.extend(item for item in data.get("items") or [] if isinstance(item, dict))
            page_token = data.get("page_token") if data.get("has_more") else None
            if not page_token:
                break
        return items

    def create_table(self, name: str, fields: list[dict[str, Any]], default_view_name: str = "本地化数据") -> str:
        data = self._request(
            "POST",
            "/tables",
            "create_table",
            json_body={"table": {"name": name, "default_view_name": default_view_name, "fields": fields}},
        )
        table_id = data.get("table_id")
        if not isinstance(table_id, str) or not table_id:
            raise RemoteApiError("create_table_no_table_id", operation="create_table")
        return table_id

    def list_fields(self, table_id: str) -> list[dict[str, Any]]:
        page_token: str | None = None
        items: list[dict[str, Any]] = []
        while True:
            params: dict[str, Any] = {"page_size": 100}
            if page_token:
                params["page_token"] = page_token
            data = self._request("GET", f"/tables/{table_id}/fields", "list_fields", params=params)
            items.extend(item for item in data.get("items") or [] if isinstance(item, dict))
            page_token = data.get("page_token") if data.get("has_more") else None
            if not page_token:
                break
        return items

    def create_field(
        self,
        table_id: str,
        field_name: str,
        field_type: int,
        field_property: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"field_name": field_name, "type": field_type}
        if field_property:
            body["property"] = field_property
        return self._request("POST", f"/tables/{table_id}/fields", "create_field", json_body=body)

    def list_records(self, table_id: str, page_size: int = 500, page_token: str | None = None) -> dict[str, Any]:
        # automatic_fields makes Feishu include last_modified_time on every record.
        params: dict[str, Any] = {"page_size": page_size, "automatic_fields": "true"}
        if page_token:
            params["page_token"] = page_token
        data = self._request("GET", f"/tables/{table_id}/records", "list_records", params=params)
        items_raw = data.get("items") or []
        items = [item for item in items_raw if isinstance(item, dict)] if isinstance(items_raw, list) else []
        next_token = data.get("page_token") if data.get("has_more", bool(data.get("page_token"))) else None
        return {"items": items, "page_token": str(next_token) if next_token else None}

    def batch_create_records(self, table_id: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        data = self._request(
            "POST",
            f"/tables/{table_id}/records/batch_create",
            "batch_create",
            json_body={"records": [{"fields": fields} for fields in records]},
        )
        return list(data.get("records") or [])

    def batch_update_records(self, table_id: str, updates: list[tuple[str, dict[str, Any]]]) -> list[dict[str, Any]]:
        data = self._request(
            "POST",
            f"/tables/{table_id}/records/batch_update",
            "batch_update",
            json_body={"records": [{"record_id": rid, "fields": fields} for rid, fields in updates]},
        )
        return list(data.get("records") or [])

    def batch_delete_records(self, table_id: str, record_ids: list[str]) -> list[dict[str, Any]]:
        data = self._request(
            "POST",
            f"/tables/{table_id}/records/batch_delete",
            "batch_delete",
            json_body={"records": list(record_ids)},
        )
        return [r for r in data.get("records") or [] if isinstance(r, dict) and r.get("deleted", True)]
