"""Initial roster schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

attendance_status = postgresql.ENUM(
    "absent",
    "duty",
    "training",
    "on_leave",
    "return_to_unit",
    "suspension",
    "resignation",
    "termination",
    "other",
    name="attendance_status",
    create_type=False,
)
approval_status = postgresql.ENUM(
    "approved",
    "pending",
    "rejected",
    name="approval_status",
    create_type=False,
)
leave_type = postgresql.ENUM(
    "CL",
    "EL",
    "ML",
    "Maternity",
    "other",
    name="leave_type",
    create_type=False,
)
user_role = postgresql.ENUM("admin", "staff", name="user_role", create_type=False)
audit_actor_type = postgresql.ENUM("USER", "SYSTEM", name="audit_actor_type", create_type=False)


def _timestamp(name: str, *, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _personnel_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("pno", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("father_name", sa.String(length=255), nullable=False),
        sa.Column("rank", sa.String(length=50), nullable=False, server_default=sa.text("'CONST'")),
        sa.Column("mobile_number", sa.String(length=20), nullable=False),
        sa.Column("education", sa.String(length=255), nullable=False, server_default=sa.text("'Not specified'")),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("date_of_joining", sa.Date(), nullable=True),
        sa.Column("blood_group", sa.String(length=20), nullable=False, server_default=sa.text("'Not specified'")),
        sa.Column("nominee", sa.String(length=255), nullable=False, server_default=sa.text("'Not specified'")),
        sa.Column("home_address", sa.Text(), nullable=False),
        sa.Column(
            "current_posting_district",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'Not specified'"),
        ),
        sa.Column("category_caste", sa.String(length=100), nullable=True),
        sa.Column("toli_no", sa.String(length=50), nullable=True),
        sa.Column("photo_url", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    ]


def _archive_columns() -> list[sa.Column]:
    return [
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archived_by", sa.String(length=255), nullable=True),
        sa.Column(
            "folder_id",
            sa.String(length=36),
            sa.ForeignKey("archive_folders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=20), nullable=True, server_default=sa.text("'archived'")),
    ]


def _day_record_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("personnel_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("approval_status", approval_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("personnel_id", "date", name=f"uq_{name}_personnel_date"),
    )
    op.create_index(f"ix_{name}_personnel_id", name, ["personnel_id"], unique=False)
    op.create_index(f"ix_{name}_date", name, ["date"], unique=False)


def _leave_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("personnel_id", sa.String(length=36), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("leave_type", leave_type, nullable=True),
        sa.Column("status", approval_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("end_date >= start_date", name=f"ck_{name}_range"),
    )
    op.create_index(f"ix_{name}_personnel_id", name, ["personnel_id"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    attendance_status.create(bind, checkfirst=True)
    approval_status.create(bind, checkfirst=True)
    leave_type.create(bind, checkfirst=True)
    user_role.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "trainees",
        *_personnel_columns(),
        sa.Column("chest_no", sa.String(length=50), nullable=False),
        sa.Column("arrival_date", sa.Date(), nullable=True),
        sa.Column("departure_date", sa.Date(), nullable=True),
        sa.UniqueConstraint("pno", name="uq_trainees_pno"),
    )
    op.create_index("ix_trainees_pno", "trainees", ["pno"], unique=False)

    op.create_table(
        "staff",
        *_personnel_columns(),
        sa.Column("class_no", sa.String(length=50), nullable=True),
        sa.Column("class_subject", sa.String(length=255), nullable=True),
        sa.Column("arrival_date", sa.Date(), nullable=True),
        sa.UniqueConstraint("pno", name="uq_staff_pno"),
    )
    op.create_index("ix_staff_pno", "staff", ["pno"], unique=False)

    op.create_table(
        "archive_folders",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("folder_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=False),
    )

    op.create_table(
        "archived_trainees",
        *_personnel_columns(),
        *_archive_columns(),
        sa.Column("chest_no", sa.String(length=50), nullable=False),
        sa.Column("arrival_date", sa.Date(), nullable=True),
        sa.Column("departure_date", sa.Date(), nullable=True),
    )
    op.create_index("ix_archived_trainees_pno", "archived_trainees", ["pno"], unique=False)
    op.create_index("ix_archived_trainees_folder_id", "archived_trainees", ["folder_id"], unique=False)

    op.create_table(
        "archived_staff",
        *_personnel_columns(),
        *_archive_columns(),
        sa.Column("class_no", sa.String(length=50), nullable=True),
        sa.Column("class_subject", sa.String(length=255), nullable=True),
        sa.Column("arrival_date_rtc", sa.Date(), nullable=True),
    )
    op.create_index("ix_archived_staff_pno", "archived_staff", ["pno"], unique=False)
    op.create_index("ix_archived_staff_folder_id", "archived_staff", ["folder_id"], unique=False)

    _day_record_table("trainee_attendance")
    _day_record_table("staff_attendance")
    _leave_table("trainee_leave")
    _leave_table("staff_leave")

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("role", user_role, nullable=False, server_default=sa.text("'staff'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at", nullable=False),
    )
    op.create_index("ix_app_users_username", "app_users", ["username"], unique=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=100), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_app_users_username", table_name="app_users")
    op.drop_table("app_users")

    for name in ("staff_leave", "trainee_leave"):
        op.drop_index(f"ix_{name}_personnel_id", table_name=name)
        op.drop_table(name)
    for name in ("staff_attendance", "trainee_attendance"):
        op.drop_index(f"ix_{name}_date", table_name=name)
        op.drop_index(f"ix_{name}_personnel_id", table_name=name)
        op.drop_table(name)

    for name in ("archived_staff", "archived_trainees"):
        op.drop_index(f"ix_{name}_folder_id", table_name=name)
        op.drop_index(f"ix_{name}_pno", table_name=name)
        op.drop_table(name)
    op.drop_table("archive_folders")
    op.drop_index("ix_staff_pno", table_name="staff")
    op.drop_table("staff")
    op.drop_index("ix_trainees_pno", table_name="trainees")
    op.drop_table("trainees")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
    leave_type.drop(bind, checkfirst=True)
    approval_status.drop(bind, checkfirst=True)
    attendance_status.drop(bind, checkfirst=True)
