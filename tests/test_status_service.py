from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from db_helpers import TempDatabase, items, seed_reference_data
from prworkflow.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from prworkflow.models import DeliveryNote, Notification, PurchaseRequest, PurchaseRequestStatus, UserRole
from prworkflow.services import status_service
from prworkflow.services.purchase_request_service import create_request
from prworkflow.services.status_service import (
    Actor,
    append_note,
    apply_status_change,
    is_transition_allowed,
    notification_for,
)

SUP1 = Actor(id='Sup1', name='Sup1')


class StatusTransitionRulesTests(unittest.TestCase):
    def test_diagram_edges(self) -> None:
        self.assertTrue(is_transition_allowed(PurchaseRequestStatus.PENDING, PurchaseRequestStatus.APPROVED))
        self.assertTrue(is_transition_allowed(PurchaseRequestStatus.APPROVED, PurchaseRequestStatus.PROCESSED))
        self.assertTrue(is_transition_allowed(PurchaseRequestStatus.RETURNED, PurchaseRequestStatus.PENDING))
        self.assertFalse(is_transition_allowed(PurchaseRequestStatus.PENDING, PurchaseRequestStatus.PROCESSED))
        self.assertFalse(is_transition_allowed(PurchaseRequestStatus.PROCESSED, PurchaseRequestStatus.PENDING))

    def test_append_note_never_drops_existing_text(self) -> None:
        self.assertEqual(append_note(None, 'A'), 'A')
        self.assertEqual(append_note('A', 'B'), 'A\nB')

    def test_notification_targets(self) -> None:
        approved = notification_for('pr-1', PurchaseRequestStatus.APPROVED, 'Sup1')
        self.assertEqual(approved.role, UserRole.WAREHOUSE_MAN)
        self.assertEqual(approved.message, 'Purchase Request (#pr-1) was Approved by Sup1.')

        processed = notification_for('pr-1', PurchaseRequestStatus.PROCESSED, 'Sup1')
        self.assertEqual(processed.role, UserRole.SUPERVISOR)
        self.assertEqual(processed.message, 'Purchase Request (#pr-1) was Processed by Sup1.')

        returned = notification_for('pr-1', PurchaseRequestStatus.RETURNED, 'Sup1')
        self.assertEqual(returned.role, UserRole.WAREHOUSE_MAN)
        self.assertEqual(returned.message, 'Purchase Request (#pr-1) was Returned by Sup1.')

        resubmitted = notification_for('pr-1', PurchaseRequestStatus.PENDING, 'Wh1')
        self.assertEqual(resubmitted.role, UserRole.SUPERVISOR)


class ApplyStatusChangeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = TempDatabase()
        with self.database.session_factory() as db:
            seed_reference_data(db)
        self.db = self.database.session_factory()
        self.pr_id = create_request(self.db, requester_id='Wh1', items=items(('P1', 2, 10)), note='urgent').request.id

    def tearDown(self) -> None:
        self.db.close()
        self.database.cleanup()

    def _notifications_for_role_users(self, user_ids: list[str]) -> list[Notification]:
        with self.database.session_factory() as db:
            return db.execute(
                select(Notification).where(Notification.user_id.in_(user_ids)).order_by(Notification.user_id)
            ).scalars().all()

    def test_approve_sets_status_approver_and_notifies_warehouse(self) -> None:
        updated = apply_status_change(self.db, pr_id=self.pr_id, new_status='Approved', actor=SUP1)

        self.assertEqual(updated['status'], 'Approved')
        self.assertEqual(updated['approved_by']['id'], 'Sup1')
        self.assertEqual(updated['delivery_note']['status'], 'Approved')
        self.assertEqual(updated['delivery_note']['verified_by'], 'Sup1')
        self.assertEqual(updated['delivery_note']['note'], 'urgent')

        rows = self._notifications_for_role_users(['Wh1', 'Wh2'])
        self.assertEqual([row.user_id for row in rows], ['Wh1', 'Wh2'])
        for row in rows:
            self.assertIn(f'#{self.pr_id}', row.message)
            self.assertIn('Approved by Sup1', row.message)
            self.assertEqual(row.status.value, 'Unread')

    def test_notes_are_appended_in_order(self) -> None:
        apply_status_change(self.db, pr_id=self.pr_id, new_status='Approved', actor=SUP1, note='A')
        updated = apply_status_change(self.db, pr_id=self.pr_id, new_status='Processed', actor=SUP1, note='B')

        self.assertEqual(
            updated['delivery_note']['note'],
            'urgent\nSup1 Approved Purchase Request: A\nSup1 Processed Purchase Request: B',
        )

    def test_empty_or_unknown_status_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            apply_status_change(self.db, pr_id=self.pr_id, new_status='', actor=SUP1)
        with self.assertRaises(ValidationError):
            apply_status_change(self.db, pr_id=self.pr_id, new_status=None, actor=SUP1)
        with self.assertRaises(ValidationError):
            apply_status_change(self.db, pr_id=self.pr_id, new_status='Shipped', actor=SUP1)

    def test_missing_request_raises_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            apply_status_change(self.db, pr_id='missing', new_status='Approved', actor=SUP1)

    def test_permissive_mode_allows_off_diagram_moves(self) -> None:
        updated = apply_status_change(self.db, pr_id=self.pr_id, new_status='Processed', actor=SUP1)
        self.assertEqual(updated['status'], 'Processed')

    def test_strict_mode_rejects_off_diagram_moves(self) -> None:
        with self.assertRaises(InvalidTransitionError):
            apply_status_change(self.db, pr_id=self.pr_id, new_status='Processed', actor=SUP1, strict=True)

        with self.database.session_factory() as db:
            status = db.execute(select(PurchaseRequest.status).where(PurchaseRequest.id == self.pr_id)).scalar_one()
        self.assertEqual(status, PurchaseRequestStatus.PENDING)

        updated = apply_status_change(self.db, pr_id=self.pr_id, new_status='Approved', actor=SUP1, strict=True)
        self.assertEqual(updated['status'], 'Approved')

    def test_notification_failure_does_not_undo_status_change(self) -> None:
        with patch(
            'prworkflow.services.notification_service.notify_role',
            side_effect=OperationalError('INSERT', {}, Exception('disk full')),
        ):
            with self.assertLogs('prworkflow.services.notification_service', level='ERROR'):
                updated = apply_status_change(self.db, pr_id=self.pr_id, new_status='Returned', actor=SUP1, note='why')

        self.assertEqual(updated['status'], 'Returned')
        with self.database.session_factory() as db:
            request = db.execute(select(PurchaseRequest).where(PurchaseRequest.id == self.pr_id)).scalar_one()
            note = db.execute(select(DeliveryNote.note).where(DeliveryNote.pr_id == self.pr_id)).scalar_one()
        self.assertEqual(request.status, PurchaseRequestStatus.RETURNED)
        self.assertTrue(note.endswith('Sup1 Returned Purchase Request: why'))
        self.assertEqual(self._notifications_for_role_users(['Wh1', 'Wh2']), [])

    def test_concurrent_note_write_raises_conflict_instead_of_losing_it(self) -> None:
        real_append = status_service.append_note

        def append_after_concurrent_write(existing, line):
            with self.database.session_factory() as other:
                note = other.execute(select(DeliveryNote).where(DeliveryNote.pr_id == self.pr_id)).scalar_one()
                note.note = real_append(note.note, 'Sup2 Returned Purchase Request: parallel')
                other.commit()
            return real_append(existing, line)

        with patch.object(status_service, 'append_note', side_effect=append_after_concurrent_write):
            with self.assertRaises(ConflictError):
                apply_status_change(self.db, pr_id=self.pr_id, new_status='Approved', actor=SUP1, note='mine')

        with self.database.session_factory() as db:
            note = db.execute(select(DeliveryNote.note).where(DeliveryNote.pr_id == self.pr_id)).scalar_one()
        self.assertEqual(note, 'urgent\nSup2 Returned Purchase Request: parallel')


if __name__ == '__main__':
    unittest.main()
