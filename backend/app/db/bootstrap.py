from __future__ import annotations

import logging

from sqlalchemy import inspect, text

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "organisations": {
        "organisation_id",
        "admin_ref",
        "days_count",
        "period_count",
        "teacher_ids",
        "classrooms",
        "version",
    },
    "teachers": {"id", "email", "global_permissions", "is_active"},
    "teacher_memberships": {"id", "teacher_id", "organisation_id", "subjects", "classes", "permissions"},
    "activity_logs": {"id", "organisation_id", "teacher_id", "action"},
}


def _ensure_organisations_version_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "organisations" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("organisations")}
        if "version" in column_names:
            return
        connection.execute(text("ALTER TABLE organisations ADD COLUMN version INTEGER NOT NULL DEFAULT 1"))


def _ensure_activity_logs_organisation_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "activity_logs" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("activity_logs")}
        if "organisation_id" in column_names:
            return
        connection.execute(text("ALTER TABLE activity_logs ADD COLUMN organisation_id VARCHAR(100)"))


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_organisations_version_column()
        _ensure_activity_logs_organisation_column()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
