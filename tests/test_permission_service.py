from __future__ import annotations

import unittest

from db_helpers import TempDatabase
from prworkflow.models import UserRole
from prworkflow.services.permission_service import (
    load_role_capabilities,
    role_has_capability,
    upsert_role_capabilities,
)


class PermissionServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = TempDatabase()
        self.db = self.database.session_factory()

    def tearDown(self) -> None:
        self.db.close()
        self.database.cleanup()

    def test_unknown_role_has_no_capabilities(self) -> None:
        capabilities = load_role_capabilities(self.db, UserRole.SUPERVISOR)
        self.assertEqual(capabilities, frozenset())
        self.assertFalse(role_has_capability(capabilities, 'view_purchase_requests'))

    def test_capabilities_round_trip_through_role_table(self) -> None:
        upsert_role_capabilities(
            self.db,
            role=UserRole.WAREHOUSE_MAN,
            capabilities=frozenset({'create_purchase_requests', 'view_purchase_requests'}),
        )
        self.db.commit()

        capabilities = load_role_capabilities(self.db, 'WarehouseMan')
        self.assertTrue(role_has_capability(capabilities, 'create_purchase_requests'))
        self.assertFalse(role_has_capability(capabilities, 'delete_purchase_requests'))

        upsert_role_capabilities(self.db, role=UserRole.WAREHOUSE_MAN, capabilities=frozenset({'view_notifications'}))
        self.db.commit()
        self.assertEqual(load_role_capabilities(self.db, UserRole.WAREHOUSE_MAN), frozenset({'view_notifications'}))


if __name__ == '__main__':
    unittest.main()
