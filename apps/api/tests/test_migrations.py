from __future__ import annotations

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _config() -> Config:
    return Config(str(ALEMBIC_INI))


def test_upgrade_builds_schema_and_downgrade_drops_it(tmp_path, monkeypatch):
    db_file = tmp_path / "migrated.db"
    monkeypatch.setenv("DATABASE_URL", "sqlite:///" + db_file.as_posix())

    command.upgrade(_config(), "head")

    eng = create_engine("sqlite:///" + db_file.as_posix())
    try:
        tables = set(inspect(eng).get_table_names())
        assert {"users", "recipes", "battles", "battle_entries", "media", "battle_votes", "admin_logs"} <= tables
        uniques = inspect(eng).get_unique_constraints("battle_entries")
        assert any(sorted(u["column_names"]) == ["battle_id", "recipe_id"] for u in uniques)

        with eng.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO admin_logs (admin_id, action, target_type, target_id, details_json, created_at) "
                    "VALUES ('a', 'CREATE_BATTLE', 'battle', 'b', '{}', '2026-03-01T12:00:00Z')"
                )
            )
        with pytest.raises(IntegrityError):
            with eng.begin() as conn:
                conn.execute(text("DELETE FROM admin_logs"))
    finally:
        eng.dispose()

    command.downgrade(_config(), "base")

    eng = create_engine("sqlite:///" + db_file.as_posix())
    try:
        assert "battles" not in set(inspect(eng).get_table_names())
    finally:
        eng.dispose()
