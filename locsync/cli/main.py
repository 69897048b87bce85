from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from locsync.core.config import DEFAULT_CONFIG_PATH, RUN_HISTORY_PATH, AppConfig, load_config, save_config
from locsync.core.errors import ConflictError, LocSyncError
from locsync.core.logging_setup import setup_logging
from locsync.providers.feishu_bitable import FeishuRemoteStore
from locsync.providers.local_sqlite import SqliteLocalStore
from locsync.sync.orchestrator import SyncOrchestrator

app = typer.Typer(add_completion=False)
console = Console()


def _append_run_history(summary: dict) -> None:
    RUN_HISTORY_PATH.parent.mkdir(parents=True, exist_ok=True)
    with RUN_HISTORY_PATH.open("a", encoding="utf-8") as f:
        f.write(json.dumps(summary, ensure_ascii=False))
        f.write("\n")


def _local_store(cfg: AppConfig) -> SqliteLocalStore:
    return SqliteLocalStore(cfg.local.path)


def _build_orchestrator() -> tuple[AppConfig, SyncOrchestrator]:
    cfg = load_config()
    setup_logging(cfg.logging.level, cfg.logging.file)
    orchestrator = SyncOrchestrator.from_config(cfg, _local_store(cfg), FeishuRemoteStore.from_config(cfg))
    return cfg, orchestrator


def _fail(e: LocSyncError):
    console.print(f"[red]{type(e).__name__}[/red]: {escape(str(e))}")
    if isinstance(e, ConflictError):
        print(json.dumps(e.as_dict(), ensure_ascii=False, indent=2))
    raise typer.Exit(2)


def _run(run_type: str, table: Optional[str]):
    _cfg, orchestrator = _build_orchestrator()
    try:
        summary = asyncio.run(getattr(orchestrator, run_type)(table))
    except LocSyncError as e:
        _append_run_history({"run_type": run_type, "table": table, "fatal_error": str(e)})
        _fail(e)
    _append_run_history(summary)
    print(json.dumps(summary, ensure_ascii=False, indent=2))


@app.command("config-show")
def config_show(path: Path = DEFAULT_CONFIG_PATH):
    """Show current config.yaml."""
    cfg = load_config(path)
    print(json.dumps(cfg.model_dump(), ensure_ascii=False, indent=2))


@app.command("config-set-auth")
def config_set_auth(
    app_id: str = typer.Option(..., "--app-id", help="Feishu app_id"),
    app_secret: str = typer.Option(..., "--app-secret", help="Feishu app_secret"),
    app_token: str = typer.Option(..., "--app-token", help="Bitable app token"),
):
    """Set Feishu app credentials and the target Bitable."""
    cfg = load_config()
    cfg.auth.app_id = app_id
    cfg.auth.app_secret = app_secret
    cfg.auth.app_token = app_token
    save_config(cfg)
    print(
        json.dumps(
            {
                "ok": True,
                "app_id_set": bool(cfg.auth.app_id),
                "app_secret_set": bool(cfg.auth.app_secret),
                "app_token_set": bool(cfg.auth.app_token),
            },
            ensure_ascii=False,
            indent=2,
        )
    )


@app.command("locale-add")
def locale_add(code: str = typer.Argument(..., help="Locale code, e.g. en-US")):
    """Add a locale column to the local store."""
    store = _local_store(load_config())
    try:
        added = store.add_locale(code)
    except LocSyncError as e:
        _fail(e)
    print(json.dumps({"ok": True, "locale": code, "added": added, "locales": store.list_locales()}, ensure_ascii=False))


@app.command("table-add")
def table_add(name: str = typer.Argument(..., help="String table name")):
    """Add a string table to the local store."""
    store = _local_store(load_config())
    try:
        added = store.add_table(name)
    except LocSyncError as e:
        _fail(e)
    print(json.dumps({"ok": True, "table": name, "added": added}, ensure_ascii=False))


@app.command("entry-set")
def entry_set(
    table: str = typer.Argument(...),
    key: str = typer.Argument(...),
    locale: str = typer.Argument(...),
    text: str = typer.Argument(""),
):
    """Write one local translation cell."""
    store = _local_store(load_config())
    try:
        store.write_entry(table, key, locale, text)
    except LocSyncError as e:
        _fail(e)
    print(json.dumps({"ok": True, "table": table, "key": key, "locale": locale}, ensure_ascii=False))


@app.command()
def plan(table: Optional[str] = typer.Option(None, "--table", help="Only this local table.")):
    """Show what a push would do, without changing anything."""
    _cfg, orchestrator = _build_orchestrator()
    try:
        table_plans = asyncio.run(orchestrator.preview(table))
    except LocSyncError as e:
        _fail(e)

    out = Table(title="locsync plan")
    out.add_column("Table")
    out.add_column("Remote")
    out.add_column("Create", justify="right")
    out.add_column("Update", justify="right")
    out.add_column("Delete", justify="right")
    out.add_column("Skip", justify="right")
    for tp in table_plans:
        counts = tp.plan.counts()
        out.add_row(
            tp.table,
            tp.table_id or "(missing)",
            str(counts["create"]),
            str(counts["update"]),
            str(counts["delete"]),
            str(counts["skip"]),
        )
    console.print(out)


@app.command()
def push(table: Optional[str] = typer.Option(None, "--table", help="Only this local table.")):
    """Push local keys and texts to the remote tables."""
    _run("push", table)


@app.command()
def pull(table: Optional[str] = typer.Option(None, "--table", help="Only this local table.")):
    """Pull completed translations into the local store."""
    _run("pull", table)


@app.command()
def sync(table: Optional[str] = typer.Option(None, "--table", help="Only this local table.")):
    """Push, then pull."""
    _run("sync", table)


@app.command()
def prune(table: Optional[str] = typer.Option(None, "--table", help="Only this local table.")):
    """Delete remote records whose key is gone locally, and duplicates."""
    _run("prune", table)


def main():
    app()


if __name__ == "__main__":
    main()
