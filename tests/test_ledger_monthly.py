import unittest
from datetime import date

from conftest import make_session
from facilita.db import models
from facilita.ledger.errors import NotFoundError, UsageLimitExceeded, ValidationError
from facilita.ledger.service import ExtraChargeDecision, TenantLedger
from facilita.services.accounts import create_company

MONTH = "2023-11"
TODAY = date(2023, 11, 20)


class MonthlyControlTests(unittest.TestCase):
    def setUp(self):
        self.db = make_session()
        tenant = create_company(self.db, "Escritorio", "Gestor", "gestor@escritorio.com", "senha123")
        self.ledger = TenantLedger(self.db, tenant.id)
        self.plan = self.ledger.create_plan("Simples Nacional", 450, 5)
        self.client = self.ledger.create_client("Padaria do Joao", self.plan.id, document="12.345", due_day=10)

    def tearDown(self):
        self.db.close()

    def _cash_flow(self):
        return self.db.query(models.CashFlowItem).all()

    def test_services_used_is_sum_of_usage_logs(self):
        self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 2, today=TODAY)
        outcome = self.ledger.add_usage(self.client.id, MONTH, "Folha", 3, today=TODAY)

        record = outcome.record
        self.assertEqual(record.services_used, 5)
        self.assertEqual(sum(log.quantity for log in record.usage_history), 5)
        self.assertEqual([log.description for log in record.usage_history], ["Guia DAS", "Folha"])
        self.assertEqual(record.status, "Pendente")
        self.assertFalse(outcome.over_limit)

    def test_usage_over_limit_without_decision_records_nothing(self):
        self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 4, today=TODAY)

        with self.assertRaises(UsageLimitExceeded) as ctx:
            self.ledger.add_usage(self.client.id, MONTH, "Alteracao contratual", 2, today=TODAY)

        self.assertEqual(ctx.exception.current, 4)
        self.assertEqual(ctx.exception.limit, 5)
        self.assertEqual(ctx.exception.quantity, 2)
        self.assertEqual(ctx.exception.to_detail()["code"], "USAGE_LIMIT_EXCEEDED")
        record = self.ledger.get_record(self.client.id, MONTH)
        self.assertEqual(record.services_used, 4)
        self.assertEqual(len(record.usage_history), 1)

    def test_usage_over_limit_with_charge_adds_income_entry(self):
        self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 5, today=TODAY)
        decision = ExtraChargeDecision(charge=True, value=80.0, payment_method="Boleto")

        outcome = self.ledger.add_usage(self.client.id, MONTH, "Certidao", 1, decision=decision, today=TODAY)

        self.assertTrue(outcome.over_limit)
        self.assertEqual(outcome.record.services_used, 6)
        entries = self._cash_flow()
        self.assertEqual(len(entries), 1)
        entry = entries[0]
        self.assertEqual(entry.description, "Serviço Adicional - Certidao (Padaria do Joao)")
        self.assertEqual(entry.value, 80.0)
        self.assertEqual(entry.type, "Entrada")
        self.assertEqual(entry.payment_method, "Boleto")
        self.assertEqual(entry.observation, "Cobrança por limite excedido")
        self.assertEqual(entry.date, TODAY)

    def test_usage_over_limit_without_charge_records_usage_only(self):
        self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 5, today=TODAY)

        outcome = self.ledger.add_usage(
            self.client.id, MONTH, "Certidao", 2, decision=ExtraChargeDecision(charge=False), today=TODAY
        )

        self.assertTrue(outcome.over_limit)
        self.assertIsNone(outcome.charge)
        self.assertEqual(outcome.record.services_used, 7)
        self.assertEqual(self._cash_flow(), [])

    def test_plan_without_limit_never_blocks_usage(self):
        unlimited = self.ledger.update_plan(self.plan.id, {"service_limit": 0})
        self.assertEqual(unlimited.service_limit, 0)

        outcome = self.ledger.add_usage(self.client.id, MONTH, "Lote", 50, today=TODAY)

        self.assertFalse(outcome.over_limit)
        self.assertEqual(outcome.record.services_used, 50)

    def test_usage_requires_description_and_positive_quantity(self):
        with self.assertRaises(ValidationError):
            self.ledger.add_usage(self.client.id, MONTH, "   ", 1, today=TODAY)
        with self.assertRaises(ValidationError):
            self.ledger.add_usage(self.client.id, MONTH, "Guia", 0, today=TODAY)
        self.assertIsNone(self.ledger.get_record(self.client.id, MONTH))

    def test_delete_usage_log_recomputes_counter(self):
        log_id = self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 2, today=TODAY).log.id
        self.ledger.add_usage(self.client.id, MONTH, "Folha", 3, today=TODAY)

        record = self.ledger.delete_usage_log(self.client.id, MONTH, log_id)

        self.assertEqual(record.services_used, 3)
        self.assertEqual([log.description for log in record.usage_history], ["Folha"])
        with self.assertRaises(NotFoundError):
            self.ledger.delete_usage_log(self.client.id, MONTH, log_id)

    def test_renew_resets_record_and_keeps_cash_flow(self):
        self.ledger.create_cash_flow_item(TODAY, "Mensalidade anterior", 450, "Entrada", "Pix")
        self.ledger.add_usage(self.client.id, MONTH, "Guia DAS", 4, today=TODAY)
        self.ledger.update_record(self.client.id, MONTH, status="Pago", notes="Cliente pontual")

        record, entry = self.ledger.renew(
            self.client.id, MONTH, add_to_cash_flow=True, payment_method="Pix", today=TODAY
        )

        self.assertEqual(record.services_used, 0)
        self.assertEqual(record.usage_history, [])
        self.assertEqual(record.status, "Pendente")
        self.assertEqual(
            record.notes,
            "Cliente pontual | [Ciclo Fechado: 4 serviços] | Renovado manualmente em 20/11/2023",
        )
        self.assertEqual(entry.description, "Mensalidade - Padaria do Joao")
        self.assertEqual(entry.value, 450)
        self.assertEqual(entry.observation, "Lançado automaticamente via renovação mensal")
        descriptions = sorted(item.description for item in self._cash_flow())
        self.assertEqual(descriptions, ["Mensalidade - Padaria do Joao", "Mensalidade anterior"])

    def test_renew_without_record_creates_one_with_note(self):
        record, entry = self.ledger.renew(self.client.id, "2023-12", today=TODAY)

        self.assertIsNone(entry)
        self.assertEqual(record.month, "2023-12")
        self.assertEqual(record.notes, "Renovado manualmente em 20/11/2023")
        self.assertEqual(self._cash_flow(), [])

    def test_update_record_upserts_once_per_client_month(self):
        created = self.ledger.update_record(self.client.id, MONTH, status="Atrasado")
        updated = self.ledger.update_record(self.client.id, MONTH, notes="Cobrar por telefone")

        self.assertEqual(created.id, updated.id)
        self.assertEqual(updated.status, "Atrasado")
        self.assertEqual(updated.notes, "Cobrar por telefone")
        self.assertEqual(self.db.query(models.MonthlyRecord).count(), 1)

    def test_monthly_overview_flags_over_limit(self):
        other = self.ledger.create_client("Tech Solutions", self.plan.id)
        self.ledger.create_client("Inativo Ltda", self.plan.id, active=False)
        self.ledger.add_usage(self.client.id, MONTH, "Lote", 6, decision=ExtraChargeDecision(charge=False), today=TODAY)

        rows = self.ledger.monthly_overview(MONTH)

        self.assertEqual([row["client"].name for row in rows], ["Padaria do Joao", "Tech Solutions"])
        by_id = {row["client"].id: row for row in rows}
        self.assertTrue(by_id[self.client.id]["over_limit"])
        self.assertFalse(by_id[other.id]["over_limit"])
        self.assertEqual(by_id[other.id]["status"], "Pendente")
        self.assertEqual([row["client"].name for row in self.ledger.monthly_overview(MONTH, "tech")], ["Tech Solutions"])

    def test_monthly_summary(self):
        premium = self.ledger.create_plan("Lucro Presumido", 1200, 50)
        other = self.ledger.create_client("Tech Solutions", premium.id)
        self.ledger.update_record(self.client.id, MONTH, status="Atrasado")
        self.ledger.update_record(other.id, MONTH, status="Pago")
        self.ledger.add_usage(self.client.id, MONTH, "Lote", 6, decision=ExtraChargeDecision(charge=False), today=TODAY)

        summary = self.ledger.monthly_summary(MONTH)

        self.assertEqual(summary["confirmed_revenue"], 1200)
        self.assertEqual(summary["potential_revenue"], 1650)
        self.assertEqual(summary["paid_count"], 1)
        self.assertEqual(summary["late_count"], 1)
        self.assertEqual(summary["pending_count"], 0)
        self.assertEqual(summary["over_limit_count"], 1)
        self.assertEqual(summary["active_clients"], 2)


if __name__ == "__main__":
    unittest.main()
