from __future__ import annotations

import unittest
from datetime import date
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import roster.models  # noqa: F401
from roster.db import Base
from roster.errors import ConflictError, ForbiddenError, NotFoundError, StorageError, ValidationError
from roster.models import (
    ArchivedStaff,
    ArchivedTrainee,
    ArchiveFolder,
    Staff,
    Trainee,
    TraineeAttendance,
    UserRole,
)
from roster.security import Actor
from roster.services import archive as archive_service
from roster.services.archive import (
    archive_many,
    archive_one,
    create_folder,
    delete_folder,
    list_archived,
    list_folders,
    unarchive_one,
)
from roster.services.attendance import submit_day_status
from roster.services.personnel import register_personnel

ADMIN = Actor(actor_id="admin", username="admin", role=UserRole.ADMIN)
CLERK = Actor(actor_id="user:7", username="clerk", role=UserRole.STAFF)
OTHER_CLERK = Actor(actor_id="user:8", username="other", role=UserRole.STAFF)

_COMPARED_FIELDS = (
    "id",
    "pno",
    "name",
    "father_name",
    "rank",
    "mobile_number",
    "education",
    "date_of_birth",
    "blood_group",
    "nominee",
    "home_address",
    "current_posting_district",
    "toli_no",
    "arrival_date",
)


def _payload(pno: str, **extra) -> dict:  # type: ignore[no-untyped-def]
    values = {
        "pno": pno,
        "name": f"Person {pno}",
        "father_name": "Shyam Singh",
        "mobile_number": "9123456780",
        "home_address": "Police Lines, Lucknow",
        "date_of_birth": date(1998, 7, 14),
        "toli_no": "T-4",
    }
    values.update(extra)
    return values


def _count(db, model) -> int:  # type: ignore[no-untyped-def]
    return int(db.scalar(select(func.count()).select_from(model)))


class ArchiveServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.db = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=True)()

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _snapshot(self, obj) -> dict:  # type: ignore[no-untyped-def]
        return {name: getattr(obj, name) for name in _COMPARED_FIELDS if hasattr(obj, name)}

    def test_trainee_round_trip_restores_same_id_and_fields(self) -> None:
        trainee = register_personnel(
            self.db,
            personnel_type="trainee",
            values=_payload("T-001", arrival_date=date(2025, 1, 2), chest_no="C-17"),
        )
        before = self._snapshot(trainee)
        trainee_id = trainee.id

        result = archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK)
        self.assertEqual(result.archived_count, 1)
        self.assertIsNone(result.folder_id)
        self.assertIsNone(self.db.get(Trainee, trainee_id))

        archived = self.db.get(ArchivedTrainee, trainee_id)
        self.assertEqual(archived.archived_by, "user:7")
        self.assertEqual(archived.status, "archived")
        self.assertIsNotNone(archived.archived_at)
        self.assertEqual(archived.chest_no, "C-17")

        message = unarchive_one(self.db, personnel_type="trainee", archived_id=trainee_id, actor=CLERK)
        self.assertIn("restored", message)

        restored = self.db.get(Trainee, trainee_id)
        self.assertIsNotNone(restored)
        self.assertEqual(self._snapshot(restored), before)
        self.assertEqual(restored.chest_no, "C-17")
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)

    def test_staff_round_trip_maps_renamed_arrival_date(self) -> None:
        staff = register_personnel(
            self.db,
            personnel_type="staff",
            values=_payload("S-001", arrival_date=date(2024, 11, 5), class_subject="Law"),
        )
        staff_id = staff.id
        before = self._snapshot(staff)

        archive_one(self.db, personnel_type="staff", personnel_id=staff_id, actor=ADMIN)
        archived = self.db.get(ArchivedStaff, staff_id)
        self.assertEqual(archived.arrival_date_rtc, date(2024, 11, 5))

        unarchive_one(self.db, personnel_type="staff", archived_id=staff_id, actor=ADMIN)
        restored = self.db.get(Staff, staff_id)
        self.assertEqual(self._snapshot(restored), before)
        self.assertEqual(restored.class_subject, "Law")
        self.assertEqual(_count(self.db, ArchivedStaff), 0)

    def test_history_is_retained_across_archive(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("T-002"))
        trainee_id = trainee.id
        submit_day_status(
            self.db,
            personnel_type="trainee",
            personnel_id=trainee_id,
            day=date(2025, 1, 10),
            status="absent",
            reason="sick",
            actor=CLERK,
        )

        archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK)
        self.assertEqual(_count(self.db, TraineeAttendance), 1)
        unarchive_one(self.db, personnel_type="trainee", archived_id=trainee_id, actor=CLERK)

        row = self.db.scalar(select(TraineeAttendance))
        self.assertEqual(row.personnel_id, trainee_id)

    def test_batch_archive_into_folder(self) -> None:
        folder = create_folder(self.db, name="Batch 2024", description="passed out", actor=CLERK)
        ids = [
            register_personnel(self.db, personnel_type="trainee", values=_payload(f"T-1{index}")).id
            for index in range(3)
        ]

        result = archive_many(
            self.db,
            personnel_type="trainee",
            personnel_ids=ids + ["missing-id", ids[0]],
            actor=CLERK,
            folder_id=folder.id,
        )

        self.assertEqual(result.archived_count, 3)
        self.assertEqual(result.folder_id, folder.id)
        self.assertEqual(_count(self.db, Trainee), 0)
        archived = list_archived(self.db, personnel_type="trainee", folder_id=folder.id)
        self.assertEqual(sorted(row.id for row in archived), sorted(ids))

        summaries = list_folders(self.db)
        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].item_count, 3)

    def test_batch_archive_with_no_matching_rows_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            archive_many(self.db, personnel_type="trainee", personnel_ids=["a", "b"], actor=CLERK)
        with self.assertRaises(ValidationError):
            archive_many(self.db, personnel_type="trainee", personnel_ids=[" "], actor=CLERK)

    def test_archive_into_missing_folder_is_not_found(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("T-003"))
        trainee_id = trainee.id
        with self.assertRaises(NotFoundError):
            archive_one(
                self.db,
                personnel_type="trainee",
                personnel_id=trainee_id,
                actor=CLERK,
                folder_id="no-such-folder",
            )
        self.assertIsNotNone(self.db.get(Trainee, trainee_id))
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)

    def test_failed_live_delete_rolls_back_archive_copy(self) -> None:
        ids = [
            register_personnel(self.db, personnel_type="trainee", values=_payload(f"T-2{index}")).id
            for index in range(2)
        ]
        original_delete_rows = archive_service._delete_rows

        def _failing_delete(db, model, row_ids):  # type: ignore[no-untyped-def]
            if model is Trainee:
                raise OperationalError("DELETE FROM trainees", {}, Exception("connection reset"))
            return original_delete_rows(db, model, row_ids)

        with patch("roster.services.archive._delete_rows", side_effect=_failing_delete):
            with self.assertRaises(StorageError) as ctx:
                archive_many(self.db, personnel_type="trainee", personnel_ids=ids, actor=CLERK)

        self.assertIn("Failed to remove records from the active list", ctx.exception.message)
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)
        self.assertEqual(_count(self.db, Trainee), 2)

    def test_archive_many_processes_ids_beyond_batch_size_in_chunks(self) -> None:
        ids = [
            register_personnel(self.db, personnel_type="trainee", values=_payload(f"T-4{index}")).id
            for index in range(5)
        ]

        with patch("roster.services.archive.get_settings", return_value=SimpleNamespace(archive_batch_size=2)):
            result = archive_many(self.db, personnel_type="trainee", personnel_ids=ids, actor=CLERK)

        self.assertEqual(result.archived_count, 5)
        self.assertEqual(sorted(result.archived_ids), sorted(ids))
        self.assertEqual(_count(self.db, Trainee), 0)
        self.assertEqual(_count(self.db, ArchivedTrainee), 5)

    def test_failed_delete_in_later_chunk_restores_whole_batch(self) -> None:
        ids = [
            register_personnel(self.db, personnel_type="trainee", values=_payload(f"T-5{index}")).id
            for index in range(5)
        ]
        original_delete_rows = archive_service._delete_rows
        live_deletes: list[list[str]] = []

        def _fail_second_live_delete(db, model, row_ids):  # type: ignore[no-untyped-def]
            if model is Trainee:
                live_deletes.append(list(row_ids))
                if len(live_deletes) == 2:
                    raise OperationalError("DELETE FROM trainees", {}, Exception("lock timeout"))
            return original_delete_rows(db, model, row_ids)

        with patch("roster.services.archive.get_settings", return_value=SimpleNamespace(archive_batch_size=2)):
            with patch("roster.services.archive._delete_rows", side_effect=_fail_second_live_delete):
                with self.assertRaises(StorageError) as ctx:
                    archive_many(self.db, personnel_type="trainee", personnel_ids=ids, actor=CLERK)

        self.assertIn("Failed to remove records from the active list", ctx.exception.message)
        self.assertEqual(len(live_deletes), 2)
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)
        self.assertEqual(_count(self.db, Trainee), 5)
        restored_ids = set(self.db.scalars(select(Trainee.id)).all())
        self.assertEqual(restored_ids, set(ids))

    def test_unarchive_missing_record_makes_no_writes(self) -> None:
        register_personnel(self.db, personnel_type="trainee", values=_payload("T-004"))

        with self.assertRaises(NotFoundError):
            unarchive_one(self.db, personnel_type="trainee", archived_id="nonexistent-id", actor=CLERK)

        self.assertEqual(_count(self.db, Trainee), 1)
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)

    def test_unarchive_conflicts_with_reused_pno(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("T-005"))
        trainee_id = trainee.id
        archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK)
        register_personnel(self.db, personnel_type="trainee", values=_payload("T-005"))

        with self.assertRaises(ConflictError):
            unarchive_one(self.db, personnel_type="trainee", archived_id=trainee_id, actor=CLERK)
        self.assertIsNotNone(self.db.get(ArchivedTrainee, trainee_id))

    def test_failed_archive_row_delete_compensates_live_insert(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("T-006"))
        trainee_id = trainee.id
        archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK)
        original_delete_rows = archive_service._delete_rows

        def _failing_delete(db, model, row_ids):  # type: ignore[no-untyped-def]
            if model is ArchivedTrainee:
                raise OperationalError("DELETE FROM archived_trainees", {}, Exception("timeout"))
            return original_delete_rows(db, model, row_ids)

        with patch("roster.services.archive._delete_rows", side_effect=_failing_delete):
            with self.assertRaises(StorageError):
                unarchive_one(self.db, personnel_type="trainee", archived_id=trainee_id, actor=CLERK)

        self.assertIsNone(self.db.get(Trainee, trainee_id))
        self.assertIsNotNone(self.db.get(ArchivedTrainee, trainee_id))

    def test_delete_folder_moves_members_to_target(self) -> None:
        source = create_folder(self.db, name="2023", description=None, actor=CLERK)
        target = create_folder(self.db, name="Old batches", description=None, actor=CLERK)
        source_id, target_id = source.id, target.id
        trainee_id = register_personnel(self.db, personnel_type="trainee", values=_payload("T-007")).id
        staff_id = register_personnel(self.db, personnel_type="staff", values=_payload("S-007")).id
        archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK, folder_id=source_id)
        archive_one(self.db, personnel_type="staff", personnel_id=staff_id, actor=CLERK, folder_id=source_id)

        result = delete_folder(self.db, folder_id=source_id, actor=CLERK, target_folder_id=target_id)

        self.assertEqual(result.action, "moved_and_deleted")
        self.assertEqual(result.affected_count, 2)
        self.assertIsNone(self.db.get(ArchiveFolder, source_id))
        self.assertEqual(self.db.get(ArchivedTrainee, trainee_id).folder_id, target_id)
        self.assertEqual(self.db.get(ArchivedStaff, staff_id).folder_id, target_id)

    def test_delete_folder_without_target_deletes_members(self) -> None:
        folder = create_folder(self.db, name="Discard", description=None, actor=CLERK)
        folder_id = folder.id
        trainee_id = register_personnel(self.db, personnel_type="trainee", values=_payload("T-008")).id
        archive_one(self.db, personnel_type="trainee", personnel_id=trainee_id, actor=CLERK, folder_id=folder_id)

        result = delete_folder(self.db, folder_id=folder_id, actor=ADMIN)

        self.assertEqual(result.action, "deleted_with_contents")
        self.assertEqual(_count(self.db, ArchivedTrainee), 0)
        self.assertEqual(_count(self.db, ArchiveFolder), 0)

    def test_delete_folder_permissions_and_target_checks(self) -> None:
        folder = create_folder(self.db, name="Mine", description=None, actor=CLERK)
        folder_id = folder.id

        with self.assertRaises(ForbiddenError):
            delete_folder(self.db, folder_id=folder_id, actor=OTHER_CLERK)
        with self.assertRaises(ValidationError):
            delete_folder(self.db, folder_id=folder_id, actor=CLERK, target_folder_id=folder_id)
        with self.assertRaises(NotFoundError):
            delete_folder(self.db, folder_id=folder_id, actor=CLERK, target_folder_id="missing")
        with self.assertRaises(NotFoundError):
            delete_folder(self.db, folder_id="missing", actor=ADMIN)

        self.assertIsNotNone(self.db.get(ArchiveFolder, folder_id))

    def test_create_folder_requires_name(self) -> None:
        with self.assertRaises(ValidationError):
            create_folder(self.db, name="   ", description="x", actor=CLERK)
        self.assertEqual(_count(self.db, ArchiveFolder), 0)


if __name__ == "__main__":
    unittest.main()
