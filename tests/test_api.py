from unittest.mock import patch

from conftest import auth_headers
from facilita.ledger.service import TenantLedger
from facilita.services.accounts import get_password_hash


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"


def test_signup_then_login(client):
    res = client.post(
        "/api/auth/signup",
        json={"company_name": "Nova Contabil", "name": "Dona", "email": "dona@nova.com", "password": "segredo"},
    )
    assert res.status_code == 201
    assert res.json()["role"] == "Gestor"

    res = _login(client, "dona@nova.com", "segredo")
    assert res.status_code == 200
    token = res.json()["access_token"]
    me = client.get("/api/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["tenant"]["plan_name"] == "Trial"
    assert "settings.manage" in me["user"]["permissions"]

    duplicate = client.post(
        "/api/auth/signup",
        json={"company_name": "Outra", "name": "Dona", "email": "dona@nova.com", "password": "segredo"},
    )
    assert duplicate.status_code == 422


def test_login_with_wrong_password(client, company):
    res = _login(client, "gestor@alfa.com", "errada")
    assert res.status_code == 401
    assert res.json()["detail"] == "Email ou senha incorretos."


def test_oauth_token_form(client, company):
    res = client.post("/api/auth/token", data={"username": "gestor@alfa.com", "password": "senha123"})
    assert res.status_code == 200
    assert res.json()["token_type"] == "bearer"


def test_deactivated_tenant_blocks_existing_token(client, company, master):
    headers = auth_headers(company.users[0])
    res = client.post(f"/api/console/tenants/{company.id}/toggle-active", headers=auth_headers(master))
    assert res.json()["tenant"]["active"] is False

    res = client.get("/api/clients", headers=headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Esta empresa foi desativada pelo administrador."
    assert _login(client, "gestor@alfa.com", "senha123").status_code == 401


def test_usage_limit_flow(client, company):
    headers = auth_headers(company.users[0])
    plan = client.post(
        "/api/plans", json={"name": "MEI Basico", "monthly_fee": 150, "service_limit": 2}, headers=headers
    ).json()
    created = client.post("/api/clients", json={"name": "Padaria", "plan_id": plan["id"]}, headers=headers)
    assert created.status_code == 201
    client_id = created.json()["id"]
    usage_url = f"/api/monthly/2023-11/clients/{client_id}/usage"

    assert client.post(usage_url, json={"description": "Guia", "quantity": 2}, headers=headers).status_code == 201

    blocked = client.post(usage_url, json={"description": "Certidao", "quantity": 1}, headers=headers)
    assert blocked.status_code == 409
    detail = blocked.json()["detail"]
    assert detail["code"] == "USAGE_LIMIT_EXCEEDED"
    assert (detail["current"], detail["limit"], detail["quantity"]) == (2, 2, 1)

    charged = client.post(
        usage_url,
        json={
            "description": "Certidao",
            "quantity": 1,
            "extra_charge": {"charge": True, "value": 35, "payment_method": "Pix"},
        },
        headers=headers,
    )
    assert charged.status_code == 201
    body = charged.json()
    assert body["record"]["services_used"] == 3
    assert body["charge"]["observation"] == "Cobrança por limite excedido"

    overview = client.get("/api/monthly/2023-11", headers=headers).json()
    assert overview["items"][0]["over_limit"] is True

    cash_flow = client.get("/api/cash-flow", headers=headers).json()
    assert cash_flow["totals"] == {"income": 35.0, "expense": 0.0, "balance": 35.0}

    log_id = body["record"]["usage_history"][0]["id"]
    after_delete = client.delete(f"{usage_url}/{log_id}", headers=headers).json()
    assert after_delete["services_used"] == 1

    renewed = client.post(
        f"/api/monthly/2023-11/clients/{client_id}/renew", json={"add_to_cash_flow": True}, headers=headers
    ).json()
    assert renewed["record"]["services_used"] == 0
    assert renewed["cash_flow_entry"]["value"] == 150


def test_plan_in_use_returns_conflict(client, company):
    headers = auth_headers(company.users[0])
    plan_id = company.plans[0].id
    client.post("/api/clients", json={"name": "Padaria", "plan_id": plan_id}, headers=headers)

    res = client.delete(f"/api/plans/{plan_id}", headers=headers)
    assert res.status_code == 409
    assert res.json()["detail"]["code"] == "PLAN_IN_USE"


def test_assistant_permissions(client, db_session, company):
    ledger = TenantLedger(db_session, company.id)
    assistant = ledger.create_user("Ana", "ana@alfa.com", "Assistente", get_password_hash("123456"))
    plan_id = ledger.list_plans()[0].id
    padaria = ledger.create_client("Padaria", plan_id)
    headers = auth_headers(assistant)

    assert client.get("/api/plans", headers=headers).status_code == 200
    assert client.get("/api/clients", headers=headers).status_code == 200
    assert client.get("/api/dashboard", headers=headers).status_code == 403
    assert client.get("/api/cash-flow", headers=headers).status_code == 403
    assert client.get("/api/users", headers=headers).status_code == 403

    res = client.delete(f"/api/clients/{padaria.id}", headers=headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Apenas Supervisores ou Gestores podem excluir clientes."


def test_master_cannot_use_tenant_routes(client, master):
    assert client.get("/api/sync/revision", headers=auth_headers(master)).status_code == 403


def test_sync_revision_changes_after_mutation(client, company):
    headers = auth_headers(company.users[0])
    before = client.get("/api/sync/revision", headers=headers).json()["revision"]
    client.post("/api/plans", json={"name": "Novo", "monthly_fee": 10, "service_limit": 1}, headers=headers)
    after = client.get("/api/sync/revision", headers=headers).json()["revision"]
    assert after == before + 1


def test_users_endpoint_enforces_quota(client, company):
    headers = auth_headers(company.users[0])
    for name in ("ana", "carlos"):
        res = client.post("/api/users", json={"name": name, "email": f"{name}@alfa.com"}, headers=headers)
        assert res.status_code == 201
        assert res.json()["role"] == "Assistente"

    res = client.post("/api/users", json={"name": "roberto", "email": "roberto@alfa.com"}, headers=headers)
    assert res.status_code == 409
    assert _login(client, "ana@alfa.com", "123456").status_code == 200


def test_backup_export_and_restore(client, company):
    headers = auth_headers(company.users[0])
    exported = client.get("/api/settings/backup", headers=headers)
    assert exported.status_code == 200
    assert "backup_facilita_" in exported.headers["content-disposition"]
    backup = exported.json()

    revision = client.get("/api/sync/revision", headers=headers).json()["revision"]
    client.post("/api/plans", json={"name": "Temporario", "monthly_fee": 10, "service_limit": 1}, headers=headers)

    stale = client.post(f"/api/settings/backup?expected_revision={revision}", json=backup, headers=headers)
    assert stale.status_code == 409
    assert stale.json()["detail"]["code"] == "REVISION_CONFLICT"

    restored = client.post("/api/settings/backup", json=backup, headers=headers)
    assert restored.status_code == 200
    plans = client.get("/api/plans", headers=headers).json()["items"]
    assert [p["name"] for p in plans] == ["Plano Exemplo"]

    invalid = client.post("/api/settings/backup", json={"users": []}, headers=headers)
    assert invalid.status_code == 422
    assert invalid.json()["detail"] == "Arquivo de backup inválido."


def test_report_download(client, company):
    headers = auth_headers(company.users[0])
    with patch("facilita.api.v1.reports.render_report_pdf", return_value=b"%PDF-1.7") as render:
        res = client.get("/api/reports/plans?plan_status=active", headers=headers)

    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert "relatorio_plans_" in res.headers["content-disposition"]
    assert render.call_args.args[0].filter_description == "Filtro: Apenas Ativos"

    xlsx = client.get("/api/reports/cashflow?format=xlsx&payment_methods=Pix", headers=headers)
    assert xlsx.status_code == 200
    assert client.get("/api/reports/desconhecido", headers=headers).status_code == 404


def test_dashboard_insights_without_key(client, company):
    headers = auth_headers(company.users[0])
    with patch("facilita.api.v1.dashboard.get_financial_insights", return_value="Analise") as insight:
        res = client.post("/api/dashboard/insights?month=2023-11", headers=headers)
    assert res.json() == {"month": "2023-11", "insight": "Analise"}
    assert "Mês: 2023-11" in insight.call_args.args[0]


def test_console_tenant_management(client, master):
    headers = auth_headers(master)
    created = client.post(
        "/api/console/tenants",
        json={
            "name": "Beta Contabil",
            "plan_name": "Pro",
            "max_users": 5,
            "admin_name": "Gestor Beta",
            "admin_email": "gestor@beta.com",
            "admin_password": "beta123",
        },
        headers=headers,
    )
    assert created.status_code == 201
    tenant_id = created.json()["tenant"]["id"]

    listing = client.get("/api/console/tenants?search=beta", headers=headers).json()
    assert [t["name"] for t in listing["items"]] == ["Beta Contabil"]
    assert listing["items"][0]["users"] == 1
    assert listing["stats"] == {"companies": 1, "active_companies": 1, "total_users": 1}

    updated = client.patch(f"/api/console/tenants/{tenant_id}", json={"max_users": 8}, headers=headers)
    assert updated.json()["tenant"]["max_users"] == 8

    assert client.delete(f"/api/console/tenants/{tenant_id}", headers=headers).status_code == 204
    assert client.get("/api/console/tenants", headers=headers).json()["items"] == []
    assert _login(client, "gestor@beta.com", "beta123").status_code == 401


def test_console_master_management(client, master, company):
    headers = auth_headers(master)
    assert client.get("/api/console/tenants", headers=auth_headers(company.users[0])).status_code == 403

    own = client.delete(f"/api/console/masters/{master.id}", headers=headers)
    assert own.status_code == 403

    created = client.post(
        "/api/console/masters", json={"name": "Outro", "email": "outro@master.com", "password": "admin2"}, headers=headers
    )
    assert created.status_code == 201
    assert len(client.get("/api/console/masters", headers=headers).json()["items"]) == 2

    assert client.delete(f"/api/console/masters/{created.json()['id']}", headers=headers).status_code == 204


def test_backup_without_users_keeps_the_restoring_gestor(client, company):
    headers = auth_headers(company.users[0])
    res = client.post("/api/settings/backup", json={"users": [], "clients": [], "records": []}, headers=headers)
    assert res.status_code == 200
    assert client.get("/api/me", headers=headers).status_code == 200

    bad_month = {
        "users": [],
        "clients": [{"id": "c1", "name": "Padaria"}],
        "records": [{"id": "r1", "clientId": "c1", "month": "2024-13", "servicesUsed": 3, "usageHistory": []}],
    }
    res = client.post("/api/settings/backup", json=bad_month, headers=headers)
    assert res.status_code == 422
    assert res.json()["detail"] == "Arquivo de backup inválido."
