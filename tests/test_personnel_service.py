from __future__ import annotations

import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import roster.models  # noqa: F401
from roster.db import Base
from roster.errors import ConflictError, NotFoundError, ValidationError
from roster.models import Staff, Trainee
from roster.services.personnel import (
    delete_personnel,
    get_by_pno,
    get_personnel,
    list_personnel,
    register_personnel,
    update_personnel,
)


def _payload(pno: str, name: str = "Ajay Kumar", **extra) -> dict:  # type: ignore[no-untyped-def]
    values = {
        "pno": pno,
        "name": name,
        "father_name": "Vijay Kumar",
        "mobile_number": "9000000001",
        "home_address": "Civil Lines, Agra",
    }
    values.update(extra)
    return values


class PersonnelServiceTests(unittest.TestCase):
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

    def test_register_applies_defaults(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload(" 2301 "))

        self.assertIsInstance(trainee, Trainee)
        self.assertEqual(trainee.pno, "2301")
        self.assertEqual(trainee.chest_no, "2301")
        self.assertEqual(trainee.rank, "CONST")
        self.assertEqual(trainee.current_posting_district, "Not specified")
        self.assertEqual(trainee.blood_group, "Not specified")
        self.assertEqual(len(trainee.id), 36)

    def test_register_requires_core_fields(self) -> None:
        values = _payload("2302")
        values.pop("father_name")
        values["home_address"] = "  "

        with self.assertRaises(ValidationError) as ctx:
            register_personnel(self.db, personnel_type="staff", values=values)

        self.assertIn("father_name", ctx.exception.message)
        self.assertIn("home_address", ctx.exception.message)
        self.assertEqual(list_personnel(self.db, personnel_type="staff"), [])

    def test_duplicate_pno_is_conflict_within_type_only(self) -> None:
        register_personnel(self.db, personnel_type="trainee", values=_payload("2303"))

        with self.assertRaises(ConflictError) as ctx:
            register_personnel(self.db, personnel_type="trainee", values=_payload("2303", name="Other"))
        self.assertEqual(ctx.exception.status_code, 409)

        staff = register_personnel(self.db, personnel_type="staff", values=_payload("2303"))
        self.assertIsInstance(staff, Staff)

    def test_unknown_personnel_type_is_validation_error(self) -> None:
        with self.assertRaises(ValidationError):
            register_personnel(self.db, personnel_type="officer", values=_payload("2304"))

    def test_lookup_by_id_and_pno(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("2305"))

        self.assertEqual(get_personnel(self.db, personnel_type="trainee", personnel_id=trainee.id).pno, "2305")
        self.assertEqual(get_by_pno(self.db, personnel_type="trainee", pno="2305").id, trainee.id)
        with self.assertRaises(NotFoundError):
            get_by_pno(self.db, personnel_type="staff", pno="2305")
        with self.assertRaises(NotFoundError):
            get_personnel(self.db, personnel_type="trainee", personnel_id="missing")

    def test_list_filters(self) -> None:
        register_personnel(
            self.db,
            personnel_type="trainee",
            values=_payload("2306", name="Zakir Ali", current_posting_district="Kanpur", toli_no="3"),
        )
        register_personnel(
            self.db,
            personnel_type="trainee",
            values=_payload("2307", name="Mohan Das", rank="HC", chest_no="CH-99", toli_no="4"),
        )

        self.assertEqual([row.pno for row in list_personnel(self.db, personnel_type="trainee")], ["2307", "2306"])
        self.assertEqual([row.pno for row in list_personnel(self.db, personnel_type="trainee", search="zak")], ["2306"])
        self.assertEqual([row.pno for row in list_personnel(self.db, personnel_type="trainee", search="ch-99")], ["2307"])
        self.assertEqual([row.pno for row in list_personnel(self.db, personnel_type="trainee", rank="HC")], ["2307"])
        self.assertEqual(
            [row.pno for row in list_personnel(self.db, personnel_type="trainee", district="kanpur")],
            ["2306"],
        )
        self.assertEqual([row.pno for row in list_personnel(self.db, personnel_type="trainee", toli_no="4")], ["2307"])

    def test_update_checks_pno_collision(self) -> None:
        first = register_personnel(self.db, personnel_type="staff", values=_payload("2308"))
        register_personnel(self.db, personnel_type="staff", values=_payload("2309"))

        updated = update_personnel(
            self.db,
            personnel_type="staff",
            personnel_id=first.id,
            changes={"mobile_number": "9111111111", "class_subject": "IPC"},
        )
        self.assertEqual(updated.mobile_number, "9111111111")
        self.assertEqual(updated.class_subject, "IPC")

        with self.assertRaises(ConflictError):
            update_personnel(self.db, personnel_type="staff", personnel_id=first.id, changes={"pno": "2309"})
        with self.assertRaises(ValidationError):
            update_personnel(self.db, personnel_type="staff", personnel_id=first.id, changes={"name": ""})

    def test_delete_removes_live_row(self) -> None:
        trainee = register_personnel(self.db, personnel_type="trainee", values=_payload("2310"))
        trainee_id = trainee.id

        delete_personnel(self.db, personnel_type="trainee", personnel_id=trainee_id)

        with self.assertRaises(NotFoundError):
            get_personnel(self.db, personnel_type="trainee", personnel_id=trainee_id)


if __name__ == "__main__":
    unittest.main()
