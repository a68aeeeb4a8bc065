from __future__ import annotations

import os
import tempfile
import unittest

from access.policy import check_chat_access
from access.policy import user_may_chat
from access.policy import user_may_grant_admin
from access.policy import user_may_manage_whitelist
from access.store import add_admin
from access.store import add_whitelist_user
from access.store import is_admin
from access.store import is_super_admin
from access.store import is_whitelisted
from access.store import list_admins
from access.store import list_whitelist_users
from access.store import remove_whitelist_user
from db.backend import SqliteBackend
from db.migrate import apply_migrations


class AccessRegistryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.backend = SqliteBackend(os.path.join(self._tmp.name, "relay.db"))
        await apply_migrations(self.backend)

    async def asyncTearDown(self):
        await self.backend.close()
        self._tmp.cleanup()

    async def test_add_whitelist_user_is_idempotent(self):
        self.assertTrue(await add_whitelist_user(self.backend, 55, added_by=1001, notes="friend"))
        self.assertFalse(await add_whitelist_user(self.backend, 55, added_by=2002, notes="other"))

        entries = await list_whitelist_users(self.backend)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].user_id, 55)
        self.assertEqual(entries[0].added_by, 1001)
        self.assertEqual(entries[0].notes, "friend")
        self.assertIsNotNone(entries[0].added_at)

    async def test_blank_optional_fields_are_stored_as_null(self):
        await add_whitelist_user(self.backend, 56, added_by=1001, username="  ", notes="")
        entry = (await list_whitelist_users(self.backend))[0]
        self.assertIsNone(entry.username)
        self.assertIsNone(entry.notes)

    async def test_remove_whitelist_user_reports_absence(self):
        await add_whitelist_user(self.backend, 55, added_by=1001)
        self.assertTrue(await remove_whitelist_user(self.backend, 55))
        self.assertFalse(await is_whitelisted(self.backend, 55))
        self.assertFalse(await remove_whitelist_user(self.backend, 55))

    async def test_whitelist_lists_newest_first(self):
        for uid in (1, 2, 3):
            await add_whitelist_user(self.backend, uid, added_by=1001)
        entries = await list_whitelist_users(self.backend)
        self.assertEqual([e.user_id for e in entries], [3, 2, 1])

    async def test_admin_tiers(self):
        self.assertTrue(await add_admin(self.backend, 1001, is_super=True))
        self.assertTrue(await add_admin(self.backend, 2002, username="helper"))

        self.assertTrue(await is_admin(self.backend, 1001))
        self.assertTrue(await is_super_admin(self.backend, 1001))
        self.assertTrue(await is_admin(self.backend, 2002))
        self.assertFalse(await is_super_admin(self.backend, 2002))
        self.assertFalse(await is_admin(self.backend, 3003))

    async def test_existing_admin_keeps_its_tier(self):
        await add_admin(self.backend, 2002)
        self.assertFalse(await add_admin(self.backend, 2002, is_super=True))
        self.assertFalse(await is_super_admin(self.backend, 2002))

    async def test_admins_list_super_admins_first(self):
        await add_admin(self.backend, 2002)
        await add_admin(self.backend, 1001, is_super=True)
        await add_admin(self.backend, 3003)

        admins = await list_admins(self.backend)
        self.assertEqual([a.user_id for a in admins], [1001, 2002, 3003])
        self.assertIs(admins[0].is_super, True)
        self.assertIs(admins[1].is_super, False)

    async def test_admin_without_whitelist_row_may_chat(self):
        await add_admin(self.backend, 2002)
        decision = await check_chat_access(self.backend, 2002)
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.reason, "admin")
        self.assertFalse(await is_whitelisted(self.backend, 2002))

    async def test_whitelisted_user_may_chat_but_not_manage(self):
        await add_whitelist_user(self.backend, 55, added_by=1001)
        decision = await check_chat_access(self.backend, 55)
        self.assertEqual((decision.allowed, decision.reason), (True, "whitelisted"))
        self.assertFalse(await user_may_manage_whitelist(self.backend, 55))
        self.assertFalse(await user_may_grant_admin(self.backend, 55))

    async def test_unknown_user_is_denied(self):
        decision = await check_chat_access(self.backend, 9)
        self.assertEqual((decision.allowed, decision.reason), (False, "not_whitelisted"))
        self.assertFalse(await user_may_chat(self.backend, 9))

    async def test_only_super_admins_may_grant_admin(self):
        await add_admin(self.backend, 1001, is_super=True)
        await add_admin(self.backend, 2002)
        self.assertTrue(await user_may_grant_admin(self.backend, 1001))
        self.assertFalse(await user_may_grant_admin(self.backend, 2002))
        self.assertTrue(await user_may_manage_whitelist(self.backend, 2002))


if __name__ == "__main__":
    unittest.main()
