import asyncio
import sys
from pathlib import Path

import pytest
from fastapi import APIRouter, Request
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so `import app` works under pytest
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
	sys.path.insert(0, str(ROOT_DIR))

from app.errors import AppError

_ENV_KEYS = [
	"HOST", "PORT", "NODE_ENV", "LOG_LEVEL", "DATABASE", "DATABASE_PASSWORD", "DATABASE_NAME",
	"DATABASE_TIMEOUT_MS", "CORS_ORIGINS", "RATE_LIMIT_MAX", "RATE_LIMIT_WINDOW_SECONDS",
	"TRUST_PROXY", "BODY_LIMIT_BYTES", "PARAM_WHITELIST", "STATIC_DIR", "SHUTDOWN_TIMEOUT",
]


class FakeStore:
	def __init__(self, fail: Exception | None = None, gate: asyncio.Event | None = None) -> None:
		self.fail = fail
		self.gate = gate
		self.connected = False
		self.close_calls = 0

	async def connect(self) -> None:
		if self.gate is not None:
			await self.gate.wait()
		if self.fail is not None:
			raise self.fail
		self.connected = True

	def close(self) -> None:
		self.close_calls += 1


def make_test_router() -> APIRouter:
	router = APIRouter()

	@router.post("/echo")
	async def echo(request: Request):
		return {"body": await request.json(), "request_time": request.state.request_time}

	@router.get("/query")
	async def query(request: Request):
		return {"params": [list(p) for p in request.query_params.multi_items()]}

	@router.get("/slow")
	async def slow(delay: float = 0.5):
		await asyncio.sleep(delay)
		return {"done": True}

	@router.get("/boom")
	async def boom():
		raise RuntimeError("kaboom")

	@router.get("/missing-tour")
	async def missing_tour():
		raise AppError("No tour found with that ID", 404)

	@router.get("/items/{item_id}")
	async def item(item_id: int):
		return {"id": item_id}

	@router.get("/big")
	async def big():
		return {"data": "x" * 5000}

	return router


@pytest.fixture
def base_env(tmp_path, monkeypatch):
	for key in _ENV_KEYS:
		monkeypatch.delenv(key, raising=False)
	monkeypatch.setenv("DATABASE", "mongodb://natours:<PASSWORD>@localhost:27017/natours")
	monkeypatch.setenv("DATABASE_PASSWORD", "s3cret")
	monkeypatch.setenv("NODE_ENV", "production")
	monkeypatch.setenv("STATIC_DIR", str(tmp_path / "no-static"))
	return monkeypatch


@pytest.fixture
def make_client(base_env):
	def _make(**env: str) -> TestClient:
		for key, value in env.items():
			base_env.setenv(key, value)
		from app.config.config import AppConfig
		from app.server.http import create_app, default_route_groups
		cfg = AppConfig()
		app = create_app(cfg, route_groups=default_route_groups() + [("/api/v1/test", make_test_router())])
		return TestClient(app, follow_redirects=False, raise_server_exceptions=False)
	return _make


@pytest.fixture
def client(make_client):
	return make_client()
