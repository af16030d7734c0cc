from fastapi.testclient import TestClient

from pool_dashboard.config import settings
from pool_dashboard.main import app


def test_proxy_requires_a_session(client_for, fake_pool_api):
    response = client_for().get("/api/v1/proxy", params={"endpoint": "workers", "currency": "BTC"})

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Authentication required"
    assert fake_pool_api.calls == []


def test_proxy_rejects_invalid_and_unknown_users(database, issue_token, fake_pool_api):
    client = TestClient(app)
    for token in ("garbage", issue_token("ghost")):
        response = client.get(
            "/api/v1/proxy",
            params={"endpoint": "workers", "currency": "BTC"},
            headers={"Cookie": f"token={token}"},
        )
        assert response.status_code == 401
    assert fake_pool_api.calls == []


def test_proxy_accepts_bearer_token(database, issue_token, fake_pool_api):
    client = TestClient(app)
    response = client.get(
        "/api/v1/proxy",
        params={"endpoint": "summary", "currency": "BTC"},
        headers={"Authorization": f"Bearer {issue_token('u_a')}"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["uptime_24h"] == 0.9954


def test_proxy_validates_endpoint_name(client_for, fake_pool_api):
    client = client_for("u_a")

    missing = client.get("/api/v1/proxy")
    unknown = client.get("/api/v1/proxy", params={"endpoint": "miners"})
    no_currency = client.get("/api/v1/proxy", params={"endpoint": "workers"})

    assert missing.status_code == 400
    assert unknown.status_code == 400
    assert "Supported endpoints" in unknown.json()["error"]
    assert no_currency.status_code == 400
    assert fake_pool_api.calls == []


def test_tenant_cannot_reach_admin_endpoints(client_for, fake_pool_api):
    response = client_for("u_a").get("/api/v1/proxy", params={"endpoint": "workspace"})
    assert response.status_code == 403
    assert fake_pool_api.calls == []


def test_tenant_scope_wins_over_requested_subaccount(client_for, fake_pool_api):
    response = client_for("u_a").get(
        "/api/v1/proxy",
        params={"endpoint": "workers", "currency": "BTC", "subaccount_names": "acct_B"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["timestamp"]
    assert "error" not in body
    upstream = fake_pool_api.calls[0]
    assert upstream["path"] == "/pool/workers/BTC"
    assert upstream["params"]["subaccount_names"] == "acct_A"
    assert upstream["headers"]["authorization"] == f"Bearer {settings.pool_api_key}"


def test_tenant_without_subaccount_gets_404(client_for, fake_pool_api):
    response = client_for("u_c").get(
        "/api/v1/proxy", params={"endpoint": "revenue", "currency": "BTC"}
    )
    assert response.status_code == 404
    assert fake_pool_api.calls == []


def test_admin_subaccount_listing_walks_every_page(client_for, fake_pool_api):
    response = client_for("u_admin").get("/api/v1/proxy", params={"endpoint": "subaccounts"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [sub["name"] for sub in data["subaccounts"]] == [
        "acct_A",
        "acct_B",
        "acct_C",
        "acct_D",
        "acct_E",
        "acct_F",
    ]
    assert data["total"] == 6
    assert fake_pool_api.paths() == ["/pool/subaccounts"] * 3


def test_upstream_status_is_passed_through(client_for, fake_pool_api):
    fake_pool_api.fail("/pool/summary/BTC", 429, {"message": "slow down"})
    response = client_for("u_a").get(
        "/api/v1/proxy", params={"endpoint": "summary", "currency": "BTC"}
    )

    assert response.status_code == 429
    assert response.json() == {
        "success": False,
        "error": "Rate limited: retry later: slow down",
        "timestamp": response.json()["timestamp"],
    }


def test_unreachable_upstream_is_503(client_for, fake_pool_api):
    fake_pool_api.unreachable = True
    response = client_for("u_a").get(
        "/api/v1/proxy", params={"endpoint": "summary", "currency": "BTC"}
    )
    assert response.status_code == 503
    assert response.json()["error"] == "Upstream unreachable"


def test_missing_pool_credential_is_a_configuration_error(client_for, fake_pool_api, monkeypatch):
    monkeypatch.setattr(settings, "pool_api_key", "")
    response = client_for("u_admin").get("/api/v1/proxy", params={"endpoint": "workspace"})

    assert response.status_code == 500
    assert response.json()["error"] == "Service configuration error"
    assert fake_pool_api.calls == []


def test_unexpected_failure_becomes_500_envelope(client_for, fake_pool_api, monkeypatch):
    from pool_dashboard.services.proxy_service import ProxyService

    async def _explode(self, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(ProxyService, "forward", _explode)
    response = client_for("u_admin").get("/api/v1/proxy", params={"endpoint": "workspace"})

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "Internal server error"


def test_admin_creates_group_with_json_body(client_for, fake_pool_api):
    response = client_for("u_admin").post(
        "/api/v1/proxy", json={"endpoint": "group-create", "name": "North", "type": "SUBACCOUNT"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["id"] == "g_new"
    upstream = fake_pool_api.calls[0]
    assert (upstream["method"], upstream["path"]) == ("POST", "/workspace/groups")
    assert upstream["json"] == {"name": "North", "type": "SUBACCOUNT"}


def test_admin_removes_group_subaccount(client_for, fake_pool_api):
    response = client_for("u_admin").request(
        "DELETE",
        "/api/v1/proxy",
        json={"endpoint": "group-subaccount-remove", "group_id": "g_1", "subaccount_name": "acct_C"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["requiresApproval"] is False
    upstream = fake_pool_api.calls[0]
    assert (upstream["method"], upstream["path"]) == ("DELETE", "/pool/groups/g_1/subaccounts/acct_C")


def test_mutation_rules(client_for, fake_pool_api):
    admin = client_for("u_admin")
    tenant = client_for("u_a")

    wrong_method = admin.post("/api/v1/proxy", json={"endpoint": "workers", "currency": "BTC"})
    not_an_object = admin.post("/api/v1/proxy", json=["group-create"])
    forbidden = tenant.post("/api/v1/proxy", json={"endpoint": "group-create", "name": "x"})
    missing_path_param = admin.request("DELETE", "/api/v1/proxy", json={"endpoint": "group-delete"})

    assert wrong_method.status_code == 400
    assert not_an_object.status_code == 400
    assert forbidden.status_code == 403
    assert missing_path_param.status_code == 400
    assert fake_pool_api.calls == []
