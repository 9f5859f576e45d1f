#!/usr/bin/env python
from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from roster.services.schema_guard import verify_runtime_schema
from roster.settings import get_settings

VERSIONS_DIR = ROOT_DIR / "roster" / "migrations" / "versions"
INSECURE_JWT_SECRETS = {"", "change-me", "secret"}


@dataclass(slots=True)
class CheckResult:
    name: str
    status: str
    details: dict[str, Any]


def _extract_revision_ids() -> list[str]:
    revisions: list[str] = []
    pattern = re.compile(r'^\s*revision\s*:\s*str\s*=\s*"([^"]+)"\s*$', re.MULTILINE)
    for path in sorted(VERSIONS_DIR.glob("*.py")):
        if path.name.startswith("__"):
            continue
        match = pattern.search(path.read_text(encoding="utf-8"))
        if match:
            revisions.append(match.group(1).strip())
    return revisions


def _check_revision_id_lengths() -> CheckResult:
    revisions = _extract_revision_ids()
    # alembic_version.version_num is VARCHAR(32).
    too_long = [revision for revision in revisions if len(revision) > 32]
    return CheckResult(
        name="migration_revision_length",
        status="ok" if not too_long else "fail",
        details={"max_len": 32, "too_long": too_long, "total": len(revisions)},
    )


def _check_auth_config() -> CheckResult:
    settings = get_settings()
    weak_secret = settings.jwt_secret.strip() in INSECURE_JWT_SECRETS or len(settings.jwt_secret) < 32
    admin_hash_set = bool((settings.admin_pass_hash or "").strip())
    return CheckResult(
        name="auth_config",
        status="fail" if weak_secret else ("ok" if admin_hash_set else "warn"),
        details={
            "jwt_secret_strong": not weak_secret,
            "admin_pass_hash_set": admin_hash_set,
            "access_token_minutes": settings.access_token_minutes,
        },
    )


def _expected_alembic_heads() -> list[str]:
    config = Config(str(ROOT_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT_DIR / "roster" / "migrations"))
    script = ScriptDirectory.from_config(config)
    return sorted(script.get_heads())


def _check_database_migration_and_schema() -> CheckResult:
    expected_heads = _expected_alembic_heads()
    engine = create_engine(get_settings().database_url, pool_pre_ping=True)
    try:
        with engine.connect() as connection:
            current_versions = [
                str(row[0]).strip()
                for row in connection.execute(text("SELECT version_num FROM alembic_version")).fetchall()
                if row and row[0] is not None
            ]
        schema_result = verify_runtime_schema(engine)
    except SQLAlchemyError as exc:
        return CheckResult(
            name="database_schema_guard",
            status="fail",
            details={"reason": "DATABASE_UNREACHABLE", "error": exc.__class__.__name__},
        )
    finally:
        engine.dispose()

    missing_heads = [head for head in expected_heads if head not in current_versions]
    return CheckResult(
        name="database_schema_guard",
        status="fail" if missing_heads or not schema_result.ok else "ok",
        details={
            "expected_heads": expected_heads,
            "current_versions": current_versions,
            "missing_heads": missing_heads,
            "schema_guard_ok": schema_result.ok,
            "schema_guard_issues": schema_result.issues,
            "schema_guard_warnings": schema_result.warnings,
        },
    )


def main() -> int:
    checks = [
        _check_revision_id_lengths(),
        _check_auth_config(),
        _check_database_migration_and_schema(),
    ]
    failed_checks = [check for check in checks if check.status == "fail"]
    summary = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "ok": len(failed_checks) == 0,
        "checks": [
            {
                "name": check.name,
                "status": check.status,
                "details": check.details,
            }
            for check in checks
        ],
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0 if len(failed_checks) == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
