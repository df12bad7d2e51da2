from datetime import date

import pytest

from facilita.ledger.errors import (
    NotFoundError,
    PermissionDeniedError,
    PlanInUseError,
    QuotaExceededError,
    ValidationError,
)
from facilita.ledger.service import TenantLedger
from facilita.services.accounts import create_company


def test_plan_in_use_cannot_be_deleted(ledger):
    plan = ledger.create_plan("MEI Basico", 150, 5)
    client = ledger.create_client("Consultorio Dr. Pedro", plan.id)

    with pytest.raises(PlanInUseError) as exc:
        ledger.delete_plan(plan.id)
    assert exc.value.clients_count == 1
    assert "em uso por clientes" in exc.value.message

    ledger.update_client(client.id, {"plan_id": ledger.list_plans("exemplo")[0].id})
    ledger.delete_plan(plan.id)
    assert all(p.id != plan.id for p in ledger.list_plans())


def test_list_plans_search_is_case_insensitive(ledger):
    ledger.create_plan("Lucro Presumido", 1200, 50)
    assert [p.name for p in ledger.list_plans("PRESUMIDO")] == ["Lucro Presumido"]


def test_list_clients_filters_and_sorts(ledger):
    mei = ledger.create_plan("MEI Basico", 150, 5)
    simples = ledger.create_plan("Simples Nacional", 450, 20)
    ledger.create_client("Tech Solutions", simples.id, document="98.765", contact="Maria", due_day=5)
    ledger.create_client("Padaria do Joao", simples.id, document="12.345", contact="Joao", due_day=10)
    ledger.create_client("Consultorio", mei.id, document="11.111", contact="Pedro", due_day=20)

    assert [c.name for c in ledger.list_clients()] == ["Consultorio", "Padaria do Joao", "Tech Solutions"]
    assert [c.due_day for c in ledger.list_clients(sort="dueDay")] == [5, 10, 20]
    assert [c.plan.name for c in ledger.list_clients(sort="plan")][0] == "MEI Basico"
    assert [c.name for c in ledger.list_clients(search="maria")] == ["Tech Solutions"]
    assert [c.name for c in ledger.list_clients(search="simples")] == ["Padaria do Joao", "Tech Solutions"]
    assert [c.name for c in ledger.list_clients(plan_id=mei.id)] == ["Consultorio"]
    assert [c.name for c in ledger.list_clients(plan_id="all", due_day=10)] == ["Padaria do Joao"]
    assert ledger.due_days() == [5, 10, 20]
    with pytest.raises(ValidationError):
        ledger.list_clients(sort="documento")


def test_assistant_cannot_delete_client(ledger):
    plan = ledger.create_plan("MEI Basico", 150, 5)
    client = ledger.create_client("Padaria", plan.id)

    with pytest.raises(PermissionDeniedError):
        ledger.delete_client(client.id, actor_role="Assistente")

    ledger.delete_client(client.id, actor_role="Supervisor")
    with pytest.raises(NotFoundError):
        ledger.get_client(client.id)


def test_deleting_client_removes_its_records(ledger, db_session):
    from facilita.db import models

    plan = ledger.create_plan("MEI Basico", 150, 5)
    client = ledger.create_client("Padaria", plan.id)
    ledger.add_usage(client.id, "2023-11", "Guia", 1, today=date(2023, 11, 1))

    ledger.delete_client(client.id, actor_role="Gestor")

    assert db_session.query(models.MonthlyRecord).count() == 0
    assert db_session.query(models.UsageLog).count() == 0


def test_tenants_are_isolated(db_session, ledger):
    other_tenant = create_company(db_session, "Escritorio Beta", "Gestor Beta", "gestor@beta.com", "senha123")
    other = TenantLedger(db_session, other_tenant.id)
    plan = ledger.create_plan("MEI Basico", 150, 5)
    client = ledger.create_client("Padaria", plan.id)

    with pytest.raises(NotFoundError):
        other.get_client(client.id)
    with pytest.raises(NotFoundError):
        other.create_client("Intruso", plan.id)
    assert [c.name for c in other.list_clients()] == []
    assert [p.name for p in other.list_plans()] == ["Plano Exemplo"]


def test_mutations_bump_data_revision(ledger):
    start = ledger.tenant().data_revision
    plan = ledger.create_plan("MEI Basico", 150, 5)
    ledger.update_plan(plan.id, {"monthly_fee": 180})
    assert ledger.tenant().data_revision == start + 2


def test_cash_flow_filters_sort_and_totals(ledger):
    ledger.create_cash_flow_item(date(2023, 11, 1), "Mensalidade Tech", 1200, "Entrada", "Pix")
    ledger.create_cash_flow_item(date(2023, 11, 2), "Mensalidade Padaria", 450, "Entrada", "Boleto")
    ledger.create_cash_flow_item(date(2023, 11, 5), "Licenca Software", 250, "Saída", "Cartão")
    ledger.create_cash_flow_item(date(2023, 12, 1), "Material", 80, "Saída", None)

    assert [i.description for i in ledger.list_cash_flow()][0] == "Material"
    assert [i.value for i in ledger.list_cash_flow(sort="value_asc")] == [80, 250, 450, 1200]
    assert [i.description for i in ledger.list_cash_flow(entry_type="Saída", end=date(2023, 11, 30))] == [
        "Licenca Software"
    ]
    november = ledger.list_cash_flow(start=date(2023, 11, 2), end=date(2023, 11, 5), sort="date_asc")
    assert [i.description for i in november] == ["Mensalidade Padaria", "Licenca Software"]
    assert ledger.cash_flow_totals() == {"income": 1650.0, "expense": 330.0, "balance": 1320.0}


def test_update_cash_flow_item_can_clear_payment_method(ledger):
    item = ledger.create_cash_flow_item(date(2023, 11, 1), "Mensalidade", 100, "Entrada", "Pix")
    updated = ledger.update_cash_flow_item(item.id, {"payment_method": None, "value": 120})
    assert updated.payment_method is None
    assert updated.value == 120


def test_user_quota_and_unique_email(ledger):
    ledger.create_user("Ana", "ana@alfa.com", "Assistente", "hash")
    with pytest.raises(ValidationError):
        ledger.create_user("Ana 2", "ANA@alfa.com", "Assistente", "hash")
    ledger.create_user("Carlos", "carlos@alfa.com", "Supervisor", "hash")

    with pytest.raises(QuotaExceededError):
        ledger.create_user("Roberto", "roberto@alfa.com", "Gestor", "hash")


def test_user_cannot_change_own_role_or_delete_self(ledger):
    admin = ledger.list_users()[0]
    other = ledger.create_user("Ana", "ana@alfa.com", "Assistente", "hash")

    with pytest.raises(PermissionDeniedError):
        ledger.update_user(admin.id, admin.id, {"role": "Assistente"})
    with pytest.raises(PermissionDeniedError):
        ledger.delete_user(admin.id, admin.id)

    assert ledger.update_user(admin.id, other.id, {"role": "Supervisor"}).role == "Supervisor"
    ledger.delete_user(admin.id, other.id)
    assert [u.id for u in ledger.list_users()] == [admin.id]


def test_company_settings_logo_must_be_data_url(ledger):
    with pytest.raises(ValidationError):
        ledger.update_company_settings(logo_base64="http://example.com/logo.png")

    settings = ledger.update_company_settings(
        name="Alfa Contabil", address="Rua 1", logo_base64="data:image/png;base64,AAAA"
    )
    assert settings == {"name": "Alfa Contabil", "address": "Rua 1", "logo_base64": "data:image/png;base64,AAAA"}
    assert ledger.update_company_settings(remove_logo=True)["logo_base64"] is None
