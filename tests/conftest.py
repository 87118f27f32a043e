"""Общие фикстуры для тестов armsoft.

Содержит фейковый ArmSoft сервер поверх httpx.MockTransport,
управляемые часы и фабрику менеджеров.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from armsoft import ApiCredentials, ArmSoftApiClientManager, TokenCache, TokenStore

BASE_URL = "https://armsoft.test/mobiletrade/api"
API_PREFIX = "/mobiletrade/api"

Handler = Callable[[httpx.Request], Any]


class FakeClock:
    """Часы, которые двигаются только вручную."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeArmSoftServer:
    """Обработчик для httpx.MockTransport.

    Записывает все запросы и отвечает по маршрутам (method, path).
    По умолчанию авторизация успешна и возвращает токен abc123.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Handler] = {}
        self.route("POST", "/Login/ApiKey", json_body={"accessToken": "abc123"})

    def route(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        content: bytes | None = None,
        delay: float = 0.0,
    ) -> None:
        def build() -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content)
            if json_body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=json_body)

        async def delayed() -> httpx.Response:
            await asyncio.sleep(delay)
            return build()

        def handler(request: httpx.Request) -> Any:
            # MockTransport дожидается корутины
            return delayed() if delay else build()

        self._routes[(method, path)] = handler

    def raise_on(self, method: str, path: str, error: Exception) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        self._routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        handler = self._routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404)
        return handler(request)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == API_PREFIX + path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def server() -> FakeArmSoftServer:
    return FakeArmSoftServer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def credentials() -> ApiCredentials:
    return ApiCredentials(
        client_id="00000000-0000-0000-0000-000000000000",
        secret="top-secret",
        db_id="00000",
    )


@pytest.fixture
async def http_client(
    server: FakeArmSoftServer,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    yield client
    await client.aclose()


@pytest.fixture
def make_manager(
    credentials: ApiCredentials,
    clock: FakeClock,
    http_client: httpx.AsyncClient,
) -> Callable[..., ArmSoftApiClientManager]:
    """Фабрика менеджеров, работающих с фейковым сервером (без запросов)."""

    def factory(
        store: TokenStore | None = None, **options: Any
    ) -> ArmSoftApiClientManager:
        options.setdefault("base_url", BASE_URL)
        options.setdefault("token_cache", TokenCache(store, clock=clock))
        return ArmSoftApiClientManager(
            credentials, http_client=http_client, **options
        )

    return factory
