#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from roster.settings import get_settings

EXPECTED_HEAD = "0001_initial"
PERSONNEL_TYPES = (
    ("trainee", "trainees", "archived_trainees", "trainee_attendance", "trainee_leave"),
    ("staff", "staff", "archived_staff", "staff_attendance", "staff_leave"),
)


def collect_checks(conn: Connection) -> list[dict[str, Any]]:
    checks: list[dict[str, Any]] = []

    def add(name: str, status: str, details: dict) -> None:
        checks.append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    tables = set(inspect(conn).get_table_names())

    current_versions: list[str] = []
    if "alembic_version" in tables:
        current_versions = [
            row[0]
            for row in conn.execute(text("select version_num from alembic_version")).fetchall()
        ]
    add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
    add(
        "migration_up_to_date",
        "ok" if EXPECTED_HEAD in current_versions else "warn",
        {"expected_head": EXPECTED_HEAD, "current": current_versions},
    )

    for personnel_type, live, archive, attendance, leave in PERSONNEL_TYPES:
        if live in tables:
            duplicate_pnos = conn.execute(
                text(f"select pno, count(*) from {live} group by pno having count(*) > 1")
            ).fetchall()
            add(
                f"{personnel_type}_duplicate_pno",
                "fail" if duplicate_pnos else "ok",
                {"rows": [list(row) for row in duplicate_pnos]},
            )

        if live in tables and archive in tables:
            live_and_archived = conn.execute(
                text(f"select l.id from {live} l join {archive} a on a.id = l.id limit 20")
            ).fetchall()
            add(
                f"{personnel_type}_live_and_archived",
                "fail" if live_and_archived else "ok",
                {"sample_ids": [row[0] for row in live_and_archived]},
            )

        if attendance in tables:
            duplicate_days = conn.execute(
                text(
                    f"""
                    select personnel_id, date, count(*)
                    from {attendance}
                    group by personnel_id, date
                    having count(*) > 1
                    """
                )
            ).fetchall()
            add(
                f"{personnel_type}_duplicate_day_records",
                "fail" if duplicate_days else "ok",
                {"rows": [[str(item) for item in row] for row in duplicate_days]},
            )

        if live not in tables or archive not in tables:
            continue
        for history in (attendance, leave):
            if history not in tables:
                continue
            # Retained history: warn only, unarchive restores the link.
            archived_history = conn.execute(
                text(
                    f"""
                    select h.id
                    from {history} h
                    join {archive} a on a.id = h.personnel_id
                    limit 20
                    """
                )
            ).fetchall()
            add(
                f"{history}_archived_personnel",
                "warn" if archived_history else "ok",
                {"sample_ids": [row[0] for row in archived_history]},
            )

            orphan_history = conn.execute(
                text(
                    f"""
                    select h.id
                    from {history} h
                    left join {live} l on l.id = h.personnel_id
                    left join {archive} a on a.id = h.personnel_id
                    where l.id is null and a.id is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                f"{history}_orphan_personnel",
                "warn" if orphan_history else "ok",
                {"sample_ids": [row[0] for row in orphan_history]},
            )

        if "archive_folders" in tables:
            orphan_folders = conn.execute(
                text(
                    f"""
                    select a.id
                    from {archive} a
                    left join archive_folders f on f.id = a.folder_id
                    where a.folder_id is not null and f.id is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                f"{archive}_missing_folder",
                "fail" if orphan_folders else "ok",
                {"sample_ids": [row[0] for row in orphan_folders]},
            )

    return checks


def run() -> dict:
    database_url = get_settings().database_url
    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "database": engine.url.render_as_string(hide_password=True),
        "checks": [],
    }
    with engine.connect() as conn:
        report["checks"] = collect_checks(conn)
    report["ok"] = all(item["status"] != "fail" for item in report["checks"])
    return report


if __name__ == "__main__":
    result = run()
    print(json.dumps(result, ensure_ascii=False, indent=2))
    sys.exit(0 if result["ok"] else 1)
