from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from roster.errors import StorageError
from roster.services.saga import SagaStep, run_saga


def _db_error(message: str) -> OperationalError:
    return OperationalError("statement", {}, Exception(message))


class SagaTests(unittest.TestCase):
    def test_all_steps_run_and_commit_in_order(self) -> None:
        db = MagicMock()
        calls: list[str] = []

        run_saga(
            db,
            [
                SagaStep(name="first", action=lambda: calls.append("first")),
                SagaStep(name="second", action=lambda: calls.append("second")),
            ],
            saga="test",
        )

        self.assertEqual(calls, ["first", "second"])
        self.assertEqual(db.commit.call_count, 2)
        db.rollback.assert_not_called()

    def test_failure_compensates_completed_steps_in_reverse(self) -> None:
        db = MagicMock()
        calls: list[str] = []

        def _fail() -> None:
            raise _db_error("disk full")

        with self.assertRaises(StorageError) as ctx:
            run_saga(
                db,
                [
                    SagaStep(name="one", action=lambda: calls.append("one"), compensate=lambda: calls.append("undo one")),
                    SagaStep(name="two", action=lambda: calls.append("two"), compensate=lambda: calls.append("undo two")),
                    SagaStep(name="three", action=_fail, compensate=lambda: calls.append("undo three")),
                ],
                saga="test",
            )

        self.assertEqual(calls, ["one", "two", "undo two", "undo one"])
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("step 'three' failed", ctx.exception.message)
        self.assertIn("disk full", ctx.exception.message)

    def test_failed_compensation_does_not_mask_original_error(self) -> None:
        db = MagicMock()

        def _fail_action() -> None:
            raise _db_error("primary failure")

        def _fail_compensation() -> None:
            raise _db_error("compensation failure")

        with self.assertRaises(StorageError) as ctx:
            run_saga(
                db,
                [
                    SagaStep(name="insert", action=lambda: None, compensate=_fail_compensation),
                    SagaStep(name="delete", action=_fail_action, failure_message="Could not delete"),
                ],
                saga="test",
            )

        self.assertTrue(ctx.exception.message.startswith("Could not delete: "))
        self.assertIn("primary failure", ctx.exception.message)
        self.assertEqual(db.rollback.call_count, 2)


if __name__ == "__main__":
    unittest.main()
