from __future__ import annotations

import unittest

from roster.models import ApprovalStatus, AttendanceStatus
from roster.services.approval import approval_status_for


class ApprovalPolicyTests(unittest.TestCase):
    def test_disciplinary_and_absence_statuses_are_auto_approved(self) -> None:
        for status in (AttendanceStatus.ABSENT, AttendanceStatus.SUSPENSION, AttendanceStatus.TERMINATION):
            with self.subTest(status=status):
                self.assertEqual(approval_status_for(status), ApprovalStatus.APPROVED)

    def test_leave_and_resignation_wait_for_review(self) -> None:
        self.assertEqual(approval_status_for(AttendanceStatus.ON_LEAVE), ApprovalStatus.PENDING)
        self.assertEqual(approval_status_for(AttendanceStatus.RESIGNATION), ApprovalStatus.PENDING)

    def test_accepts_raw_string_values(self) -> None:
        self.assertEqual(approval_status_for("absent"), ApprovalStatus.APPROVED)
        self.assertEqual(approval_status_for("on_leave"), ApprovalStatus.PENDING)

    def test_custom_and_unknown_statuses_default_to_pending(self) -> None:
        self.assertEqual(approval_status_for(AttendanceStatus.OTHER), ApprovalStatus.PENDING)
        self.assertEqual(approval_status_for("sick-bay"), ApprovalStatus.PENDING)
        self.assertEqual(approval_status_for(""), ApprovalStatus.PENDING)

    def test_every_known_status_maps_to_a_single_state(self) -> None:
        for status in AttendanceStatus:
            with self.subTest(status=status):
                self.assertIn(approval_status_for(status), (ApprovalStatus.APPROVED, ApprovalStatus.PENDING))


if __name__ == "__main__":
    unittest.main()
