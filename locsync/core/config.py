from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from locsync.core.retry import RetryPolicy

PROJECT_ROOT = Path(os.environ.get("LOCSYNC_HOME", str(Path.home() / ".locsync"))).expanduser()
RUNTIME_DIR = PROJECT_ROOT / "runtime"
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"
DEFAULT_CONFIG_TEMPLATE_PATH = PROJECT_ROOT / "config.yaml.example"
RUN_HISTORY_PATH = RUNTIME_DIR / "run_history.jsonl"


class FeishuAuthConfig(BaseModel):
    app_id: str = ""
    app_secret: str = ""
    # Bitable app token; every localization table lives inside this app.
    app_token: str = ""
    timeout_sec: int = 30


class StatusLabels(BaseModel):
    # Option names of the remote `Status` single-select field.
    not_started: str = "未完成"
    in_translation: str = "翻译中"
    completed: str = "已完成"


class SyncConfig(BaseModel):
    # Keys whose text is empty in this locale are not pushed.
    # Empty means "the first configured locale of the local store".
    source_locale: str = ""
    batch_limit: int = Field(default=500, ge=1, le=500)
    page_size: int = Field(default=500, ge=1, le=500)
    # Restrict runs to these local tables; empty means all of them.
    tables: list[str] = Field(default_factory=list)
    ensure_review_fields: bool = True
    status_labels: StatusLabels = Field(default_factory=StatusLabels)


class LocalStoreConfig(BaseModel):
    path: str = str(RUNTIME_DIR / "translations.db")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = str(RUNTIME_DIR / "locsync.log")


class AppConfig(BaseModel):
    auth: FeishuAuthConfig = Field(default_factory=FeishuAuthConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    local: LocalStoreConfig = Field(default_factory=LocalStoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def ensure_runtime_dirs(cfg: AppConfig):
    Path(cfg.logging.file).expanduser().parent.mkdir(parents=True, exist_ok=True)
    Path(cfg.local.path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    import yaml

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        if DEFAULT_CONFIG_TEMPLATE_PATH.exists():
            try:
                template_text = DEFAULT_CONFIG_TEMPLATE_PATH.read_text(encoding="utf-8")
                data = yaml.safe_load(template_text) or {}
                cfg = AppConfig.model_validate(data)
                path.write_text(template_text, encoding="utf-8")
            except Exception:
                cfg = AppConfig()
                path.write_text(yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False), encoding="utf-8")
        else:
            cfg = AppConfig()
            path.write_text(yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False), encoding="utf-8")
        ensure_runtime_dirs(cfg)
        return cfg

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    cfg = AppConfig.model_validate(data)
    ensure_runtime_dirs(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path = DEFAULT_CONFIG_PATH):
    import yaml

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False), encoding="utf-8")
