from pathlib import Path

import pytest
from pydantic import ValidationError

from locsync.core import config as config_module


def test_load_config_creates_from_template(monkeypatch, tmp_path: Path):
    template = tmp_path / "config.yaml.example"
    target = tmp_path / "config.yaml"
    runtime_dir = tmp_path / "runtime"
    template.write_text(
        "\n".join(
            [
                "auth:",
                "  app_id: tpl_app_id",
                "  app_secret: tpl_app_secret",
                "  app_token: tpl_app_token",
                "sync:",
                "  source_locale: en-US",
                "  batch_limit: 200",
                "  status_labels:",
                "    completed: Done",
                "logging:",
                f"  file: {runtime_dir / 'locsync.log'}",
                "local:",
                f"  path: {runtime_dir / 'translations.db'}",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_TEMPLATE_PATH", template)
    monkeypatch.setattr(config_module, "ensure_runtime_dirs", lambda _cfg: None)

    cfg = config_module.load_config(target)

    assert target.exists()
    assert cfg.auth.app_id == "tpl_app_id"
    assert cfg.auth.app_token == "tpl_app_token"
    assert cfg.sync.source_locale == "en-US"
    assert cfg.sync.batch_limit == 200
    assert cfg.sync.status_labels.completed == "Done"
    assert cfg.sync.status_labels.in_translation == "翻译中"


def test_load_config_creates_defaults_when_template_missing(monkeypatch, tmp_path: Path):
    target = tmp_path / "config.yaml"
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_TEMPLATE_PATH", tmp_path / "missing-template.yaml")
    monkeypatch.setattr(config_module, "ensure_runtime_dirs", lambda _cfg: None)

    cfg = config_module.load_config(target)

    assert target.exists()
    assert cfg.sync.batch_limit == 500
    assert cfg.retry.max_attempts == 3


def test_load_config_falls_back_when_template_invalid(monkeypatch, tmp_path: Path):
    template = tmp_path / "config.yaml.example"
    target = tmp_path / "config.yaml"
    template.write_text("auth: [invalid\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_TEMPLATE_PATH", template)
    monkeypatch.setattr(config_module, "ensure_runtime_dirs", lambda _cfg: None)

    cfg = config_module.load_config(target)

    assert target.exists()
    assert cfg.auth.app_token == ""


def test_save_then_load_keeps_values(monkeypatch, tmp_path: Path):
    target = tmp_path / "config.yaml"
    monkeypatch.setattr(config_module, "ensure_runtime_dirs", lambda _cfg: None)
    cfg = config_module.AppConfig()
    cfg.auth.app_token = "bascnXYZ"
    cfg.sync.tables = ["UI", "Menu"]

    config_module.save_config(cfg, target)
    loaded = config_module.load_config(target)

    assert loaded.auth.app_token == "bascnXYZ"
    assert loaded.sync.tables == ["UI", "Menu"]


def test_batch_limit_above_remote_maximum_is_rejected():
    with pytest.raises(ValidationError):
        config_module.AppConfig.model_validate({"sync": {"batch_limit": 501}})
