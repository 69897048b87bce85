from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

LogFunc = Callable[[str, str, str, Optional[str]], None]


def setup_logging(level: str, logfile: str):
    logfile = str(Path(logfile).expanduser())
    Path(logfile).parent.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    # Clear existing handlers to avoid duplicates when the CLI is re-entered in-process.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] [%(name)s] %(message)s")

    fh = logging.FileHandler(logfile, encoding="utf-8")
    fh.setLevel(log_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(fmt)
    root.addHandler(ch)

    # requests/urllib3 log every connection at DEBUG; keep them out of sync logs.
    for logger_name in ("urllib3", "urllib3.connectionpool"):
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    root.info("logging initialized")


def default_log_func(level: str, module: str, message: str, detail: str | None = None):
    logging.getLogger(module).log(
        getattr(logging, level.upper(), logging.INFO),
        f"{message} {detail or ''}".strip(),
    )


def detail_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)
