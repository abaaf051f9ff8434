"""Programmatic access to the alembic migrations under ``api/alembic``."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from ..config import settings

ALEMBIC_DIR = Path(__file__).resolve().parents[2] / "alembic"


def alembic_config(database_url: str | None = None) -> Config:
    # No ini file: the caller's logging setup stays in place.
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", (database_url or settings.database_url).replace("%", "%%"))
    return config


def upgrade_to_head(database_url: str | None = None) -> None:
    """Apply pending migrations. Must not be called from a running event loop."""
    command.upgrade(alembic_config(database_url), "head")
