import unittest

from conftest import make_session
from facilita.core.security import get_user_permissions, verify_password
from facilita.ledger.errors import PermissionDeniedError, ValidationError
from facilita.ledger.service import TenantLedger
from facilita.services import accounts, tenants


class LoginPrecedenceTests(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        self.master = accounts.add_master(self.db, "Administrador Master", "admin@master.com", "admin")
        self.alfa = accounts.create_company(self.db, "Alfa", "Gestora Alfa", "gestor@alfa.com", "alfa123")

    def tearDown(self):
        self.db.close()

    def test_master_credentials_win(self):
        TenantLedger(self.db, self.alfa.id).create_user(
            "Homonimo", "admin@master.com", "Assistente", accounts.get_password_hash("admin")
        )
        user = accounts.authenticate(self.db, "ADMIN@master.com", "admin")
        self.assertEqual(user.id, self.master.id)
        self.assertIsNone(user.tenant_id)

    def test_tenant_user_login(self):
        user = accounts.authenticate(self.db, "gestor@alfa.com", "alfa123")
        self.assertEqual(user.tenant_id, self.alfa.id)
        self.assertEqual(user.role, "Gestor")
        self.assertIsNone(accounts.authenticate(self.db, "gestor@alfa.com", "errada"))

    def test_inactive_tenant_is_treated_as_not_found(self):
        tenants.toggle_tenant(self.db, self.alfa.id)
        self.assertIsNone(accounts.authenticate(self.db, "gestor@alfa.com", "alfa123"))

    def test_first_active_tenant_wins(self):
        beta = accounts.create_company(self.db, "Beta", "Gestor Beta", "gestor@beta.com", "beta123")
        TenantLedger(self.db, beta.id).create_user(
            "Gestora Alfa", "gestor@alfa.com", "Supervisor", accounts.get_password_hash("alfa123")
        )
        self.assertEqual(accounts.authenticate(self.db, "gestor@alfa.com", "alfa123").tenant_id, self.alfa.id)

        tenants.toggle_tenant(self.db, self.alfa.id)
        self.assertEqual(accounts.authenticate(self.db, "gestor@alfa.com", "alfa123").tenant_id, beta.id)


class AccountTests(unittest.TestCase):
    def setUp(self):
        self.db = make_session()

    def tearDown(self):
        self.db.close()

    def test_signup_defaults(self):
        tenant = accounts.create_company(self.db, "Nova Empresa", "Dona", "dona@nova.com", "segredo")
        self.assertEqual(tenant.plan_name, "Trial")
        self.assertEqual(tenant.max_users, 3)
        self.assertTrue(tenant.active)
        self.assertEqual(tenant.settings_name, "Nova Empresa")
        self.assertEqual([(u.role, u.email) for u in tenant.users], [("Gestor", "dona@nova.com")])
        self.assertEqual(
            [(p.name, p.monthly_fee, p.service_limit) for p in tenant.plans], [("Plano Exemplo", 0, 10)]
        )
        with self.assertRaises(ValidationError):
            accounts.create_company(self.db, "Outra", "Dona", "DONA@nova.com", "segredo")

    def test_master_removal_rules(self):
        first = accounts.add_master(self.db, "Master 1", "m1@master.com", "admin")
        with self.assertRaises(PermissionDeniedError):
            accounts.remove_master(self.db, first, first.id)
        second = accounts.add_master(self.db, "Master 2", "m2@master.com", "admin")
        with self.assertRaises(PermissionDeniedError):
            accounts.remove_master(self.db, first, first.id)

        accounts.remove_master(self.db, first, second.id)
        self.assertEqual([m.email for m in accounts.list_masters(self.db)], ["m1@master.com"])

    def test_profile_update_keeps_password_when_blank(self):
        tenant = accounts.create_company(self.db, "Empresa", "Dona", "dona@empresa.com", "segredo")
        user = tenant.users[0]

        accounts.update_profile(self.db, user, "Dona Maria")
        self.assertEqual(user.name, "Dona Maria")
        self.assertTrue(verify_password("segredo", user.password_hash))

        accounts.update_profile(self.db, user, "Dona Maria", "nova-senha")
        self.assertTrue(verify_password("nova-senha", user.password_hash))

    def test_delete_account_requires_password(self):
        tenant = accounts.create_company(self.db, "Empresa", "Dona", "dona@empresa.com", "segredo")
        user = tenant.users[0]

        with self.assertRaises(PermissionDeniedError) as ctx:
            accounts.delete_account(self.db, user, "errada")
        self.assertEqual(ctx.exception.message, "Senha incorreta.")

        accounts.delete_account(self.db, user, "segredo")
        self.assertIsNone(accounts.authenticate(self.db, "dona@empresa.com", "segredo"))

    def test_last_master_cannot_delete_account(self):
        master = accounts.add_master(self.db, "Master", "m@master.com", "admin")
        with self.assertRaises(PermissionDeniedError):
            accounts.delete_account(self.db, master, "admin")

    def test_role_permissions(self):
        tenant = accounts.create_company(self.db, "Empresa", "Dona", "dona@empresa.com", "segredo")
        ledger = TenantLedger(self.db, tenant.id)
        assistant = ledger.create_user("Ana", "ana@empresa.com", "Assistente", "hash")
        supervisor = ledger.create_user("Carlos", "carlos@empresa.com", "Supervisor", "hash")

        self.assertEqual(
            get_user_permissions(assistant), {"monthly.view", "monthly.manage", "clients.view", "clients.manage"}
        )
        self.assertIn("dashboard.view", get_user_permissions(supervisor))
        self.assertNotIn("users.manage", get_user_permissions(supervisor))
        self.assertIn("settings.manage", get_user_permissions(tenant.users[0]))


if __name__ == "__main__":
    unittest.main()
