import asyncio
import json
import os
from datetime import UTC, datetime, timedelta
from functools import partial

os.environ.setdefault("JWT_SECRET", "test-session-secret")
os.environ.setdefault("POOL_API_KEY", "test-pool-key")
os.environ.setdefault("POOL_API_BASE_URL", "https://pool.test/api/v1")

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pool_dashboard.config import settings
from pool_dashboard.db.database import Base, get_db_session
from pool_dashboard.db.models import MinerModel, PaymentModel, SpaceModel, UserModel
from pool_dashboard.enums import MinerStatus, PaymentType, Role, SpaceStatus
from pool_dashboard.main import app

SUBACCOUNT_PAGES = [
    ["acct_A", "acct_B"],
    ["acct_C", "acct_D"],
    ["acct_E", "acct_F"],
]


def _seed_rows(now: datetime) -> list:
    return [
        UserModel(id="u_admin", email="admin@example.com", name="Admin", role=Role.ADMIN),
        UserModel(id="u_super", email="super@example.com", name="Super", role=Role.SUPER_ADMIN),
        UserModel(
            id="u_a",
            email="a@example.com",
            name="Client A",
            role=Role.CLIENT,
            external_subaccount_name="acct_A",
        ),
        UserModel(
            id="u_b",
            email="b@example.com",
            name="Client B",
            role=Role.CLIENT,
            external_subaccount_name="acct_B",
        ),
        UserModel(id="u_c", email="c@example.com", name="Client C", role=Role.CLIENT),
        SpaceModel(id="s_1", name="Rack 1", status=SpaceStatus.OCCUPIED, power_capacity=10.0),
        SpaceModel(id="s_2", name="Rack 2", status=SpaceStatus.AVAILABLE, power_capacity=5.0),
        SpaceModel(id="s_3", name="Rack 3", status=SpaceStatus.AVAILABLE, power_capacity=5.0),
        MinerModel(
            id="m_1", name="S19-1", status=MinerStatus.AUTO, power_usage=3.5, user_id="u_a", space_id="s_1"
        ),
        MinerModel(
            id="m_2", name="S19-2", status=MinerStatus.AUTO, power_usage=3.5, user_id="u_a", space_id="s_1"
        ),
        MinerModel(
            id="m_3",
            name="S21-1",
            status=MinerStatus.DEPLOYMENT_IN_PROGRESS,
            power_usage=3.0,
            user_id="u_b",
        ),
        PaymentModel(
            id="p_1", user_id="u_a", amount=100.0, type=PaymentType.PAYMENT, created_at=now - timedelta(days=5)
        ),
        PaymentModel(
            id="p_2", user_id="u_b", amount=50.0, type=PaymentType.PAYMENT, created_at=now - timedelta(days=45)
        ),
        PaymentModel(
            id="p_3",
            user_id="u_a",
            amount=-20.0,
            type=PaymentType.ELECTRICITY_CHARGES,
            created_at=now - timedelta(days=3),
        ),
    ]


@pytest.fixture
def database(tmp_path):
    """A seeded SQLite database wired into the app's session dependency."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hosting.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def _prepare() -> None:
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        async with factory() as session:
            session.add_all(_seed_rows(datetime.now(UTC)))
            await session.commit()

    asyncio.run(_prepare())

    async def _override_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _override_session
    yield factory
    app.dependency_overrides.pop(get_db_session, None)
    asyncio.run(engine.dispose())


@pytest.fixture
def issue_token():
    def _issue(user_id: str, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
        now = datetime.now(UTC)
        payload = {"sub": user_id, "iat": now, "exp": now + expires_in, **claims}
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _issue


@pytest.fixture
def client_for(database, issue_token):
    def _client(user_id: str | None = None) -> TestClient:
        client = TestClient(app)
        if user_id is not None:
            client.headers["Cookie"] = f"{settings.session_cookie_name}={issue_token(user_id)}"
        return client

    return _client


class FakePoolApi:
    """In-memory pool provider behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.failures: dict[str, tuple[int, dict]] = {}
        self.unreachable = False
        self.transport = httpx.MockTransport(self._handle)

    def fail(self, path: str, status_code: int, payload: dict | None = None) -> None:
        self.failures[path] = (status_code, payload or {"message": "upstream failure"})

    def paths(self) -> list[str]:
        return [call["path"] for call in self.calls]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v1")
        self.calls.append(
            {
                "method": request.method,
                "path": path,
                "params": dict(request.url.params),
                "headers": dict(request.headers),
                "json": json.loads(request.content) if request.content else None,
            }
        )
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.failures:
            status_code, payload = self.failures[path]
            return httpx.Response(status_code, json=payload)
        return httpx.Response(200, json=self._route(request, path))

    def _route(self, request: httpx.Request, path: str) -> dict:
        if path == "/pool/subaccounts":
            page_number = int(request.url.params.get("page_number", "1"))
            names = SUBACCOUNT_PAGES[page_number - 1]
            offset = (page_number - 1) * 2
            return {
                "subaccounts": [
                    {
                        "id": offset + index + 1,
                        "name": name,
                        "site": {"id": "site_1", "name": "Site One"},
                        "created_at": "2025-01-01T00:00:00Z",
                    }
                    for index, name in enumerate(names)
                ],
                "pagination": {
                    "page_number": page_number,
                    "page_size": 2,
                    "item_count": 6,
                    "previous_page_url": None,
                    "next_page_url": (
                        f"/pool/subaccounts?page_number={page_number + 1}"
                        if page_number < len(SUBACCOUNT_PAGES)
                        else None
                    ),
                },
            }
        if path == "/workspace":
            return {
                "id": "ws_1",
                "name": "Hosting",
                "groups": [
                    {"id": "g_1", "name": "North", "subaccounts": [{"name": "acct_A"}, {"name": "acct_B"}]},
                    {"id": "g_2", "name": "South", "subaccounts": [{"name": "acct_B"}, {"name": "acct_C"}]},
                ],
            }
        if path == "/pool/workers/BTC":
            workers = [
                ("w_1", "acct_A", 5e14, "ACTIVE"),
                ("w_2", "acct_A", 5e14, "ACTIVE"),
                ("w_3", "acct_B", 5e14, "ACTIVE"),
                ("w_4", "acct_B", 5e14, "ACTIVE"),
                ("w_5", "acct_C", 2.5e14, "INACTIVE"),
            ]
            return {
                "currency_type": "BTC",
                "total_active": 4,
                "total_inactive": 1,
                "workers": [
                    {
                        "id": worker_id,
                        "subaccount_name": subaccount,
                        "name": f"rig-{worker_id}",
                        "hashrate": hashrate,
                        "efficiency": 0.97,
                        "status": status,
                        "last_share_time": "2026-01-01T00:00:00Z",
                    }
                    for worker_id, subaccount, hashrate, status in workers
                ],
                "pagination": {"page_number": 1, "page_size": 1000, "next_page_url": None},
            }
        if path == "/pool/summary/BTC":
            return {
                "currency_type": "BTC",
                "hashrate_5m": "2000000000000000",
                "hashrate_24h": "1000000000000000",
                "uptime_24h": 0.9954,
            }
        if path == "/pool/hashrate-efficiency/BTC":
            return {
                "currency_type": "BTC",
                "tick_size": "1d",
                "hashrate_efficiency": [
                    {"date_time": "2026-01-01T00:00:00Z", "hashrate": "1000000000000000", "efficiency": 0.98},
                    {"date_time": "2026-01-02T00:00:00Z", "hashrate": "3000000000000000", "efficiency": 0.96},
                ],
            }
        if path == "/pool/revenue/BTC":
            return {
                "currency_type": "BTC",
                "revenue": [
                    {
                        "date_time": "2026-01-01T00:00:00Z",
                        "revenue": {"currency_type": "BTC", "revenue_type": "MINING", "revenue": 0.001},
                    },
                    {"date_time": "2026-01-02T00:00:00Z", "revenue": 0.002},
                    {"date_time": "2026-01-03T00:00:00Z"},
                ],
            }
        if path == "/pool/active-workers/BTC":
            return {
                "currency_type": "BTC",
                "active_workers": [{"date_time": "2026-01-01T00:00:00Z", "active_workers": 4}],
            }
        if path == "/workspace/groups" and request.method == "POST":
            body = json.loads(request.content)
            return {"id": "g_new", "name": body["name"], "type": "SUBACCOUNT", "subaccounts": []}
        if path.startswith("/workspace/groups/") and request.method == "DELETE":
            return {"id": "act_1", "status": "PENDING", "requiresApproval": True}
        if path.startswith("/pool/groups/") and request.method == "DELETE":
            return {"id": "act_2", "status": "DONE", "requiresApproval": False}
        return {"detail": f"no fake route for {request.method} {path}"}


@pytest.fixture
def fake_pool_api(monkeypatch):
    """Routes every PoolApiClient built by the proxy router to a FakePoolApi."""
    from pool_dashboard.clients.pool_client import PoolApiClient
    from pool_dashboard.routers import proxy as proxy_router

    fake = FakePoolApi()
    monkeypatch.setattr(
        proxy_router, "PoolApiClient", partial(PoolApiClient, transport=fake.transport)
    )
    return fake


@pytest.fixture
def loopback(monkeypatch):
    """Sends the dashboard's proxy calls back into this app in-process."""
    from pool_dashboard.clients.proxy_client import ProxyClient
    from pool_dashboard.routers import dashboard as dashboard_router

    def _in_process_client() -> ProxyClient:
        return ProxyClient(
            base_url="http://testserver",
            timeout_seconds=5.0,
            session_cookie_name=settings.session_cookie_name,
            transport=httpx.ASGITransport(app=app),
        )

    monkeypatch.setattr(dashboard_router, "_proxy_client", _in_process_client)
