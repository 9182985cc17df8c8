from __future__ import annotations

import unittest

from sqlalchemy import select

from db_helpers import TempDatabase, seed_reference_data
from prworkflow.errors import NotFoundError, ValidationError
from prworkflow.models import Notification, NotificationStatus, User, UserRole
from prworkflow.services.notification_service import (
    list_for_user,
    mark_read,
    notify_role,
    notify_user,
    notify_users,
    search_for_user,
)


class NotificationServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = TempDatabase()
        with self.database.session_factory() as db:
            seed_reference_data(db)
        self.db = self.database.session_factory()

    def tearDown(self) -> None:
        self.db.close()
        self.database.cleanup()

    def _all(self) -> list[Notification]:
        return self.db.execute(select(Notification).order_by(Notification.user_id)).scalars().all()

    def test_notify_role_reaches_each_active_user_once(self) -> None:
        self.db.add(
            User(id='Wh3', username='wh3', full_name='Wh3', password_hash='', role=UserRole.WAREHOUSE_MAN, active=False)
        )
        self.db.flush()

        delivered = notify_role(self.db, role=UserRole.WAREHOUSE_MAN, message='hello')
        self.db.commit()

        self.assertEqual(delivered, 2)
        rows = self._all()
        self.assertEqual([row.user_id for row in rows], ['Wh1', 'Wh2'])
        self.assertTrue(all(row.status == NotificationStatus.UNREAD for row in rows))

    def test_notify_role_without_members_is_a_no_op(self) -> None:
        for user in self.db.execute(select(User).where(User.role == UserRole.ADMIN)).scalars():
            user.active = False
        self.db.flush()

        self.assertEqual(notify_role(self.db, role=UserRole.ADMIN, message='nobody'), 0)
        self.assertEqual(self._all(), [])

    def test_notify_users_deduplicates_ids(self) -> None:
        self.assertEqual(notify_users(self.db, user_ids=['Wh1', 'Wh1', 'Sup1'], message='dup'), 2)
        self.assertEqual(notify_user(self.db, user_id='Sup2', message='single'), 1)
        self.assertEqual(notify_users(self.db, user_ids=[], message='none'), 0)
        self.db.commit()
        self.assertEqual(len(self._all()), 3)

    def test_list_search_and_mark_read(self) -> None:
        notify_users(self.db, user_ids=['Wh1'], message='Purchase Request (#1) was Approved by Sup1.')
        notify_users(self.db, user_ids=['Wh1'], message='Purchase Request (#2) was Returned by Sup1.')
        notify_users(self.db, user_ids=['Wh2'], message='Purchase Request (#3) was Approved by Sup1.')
        self.db.commit()

        mine = list_for_user(self.db, user_id='Wh1')
        self.assertEqual(len(mine), 2)
        returned = search_for_user(self.db, user_id='Wh1', term='returned')
        self.assertEqual(len(returned), 1)

        marked = mark_read(self.db, notification_id=returned[0].id, user_id='Wh1')
        self.db.commit()
        self.assertEqual(marked.status, NotificationStatus.READ)
        unread = list_for_user(self.db, user_id='Wh1', status=NotificationStatus.UNREAD)
        self.assertEqual(len(unread), 1)

        other = list_for_user(self.db, user_id='Wh2')[0]
        with self.assertRaises(NotFoundError):
            mark_read(self.db, notification_id=other.id, user_id='Wh1')
        with self.assertRaises(ValidationError):
            search_for_user(self.db, user_id='Wh1', term=' ')


if __name__ == '__main__':
    unittest.main()
