from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from assignflow.config import SETTINGS, PROJECT_ROOT

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | None = None, *, to_file: bool = True) -> None:
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = []

    if to_file:
        log_dir = PROJECT_ROOT / SETTINGS.log_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / "assignflow.log", maxBytes=2_000_000, backupCount=3
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=(level or SETTINGS.log_level).upper(),
        handlers=handlers,
        force=True,
    )
    # statement echo stays opt-in through SQLAlchemy's own flags
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
