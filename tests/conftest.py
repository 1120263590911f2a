"""Shared fixtures: a controllable clock and a fake PostgREST backend."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

import httpx
import pytest


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakePostgrest:
    """Records requests and answers them from per-(method, table) responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: dict[tuple[str, str], tuple[int, Any, dict[str, str]]] = {}

    def on(
        self,
        method: str,
        table: str,
        body: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._responses[(method, table)] = (
            status,
            [] if body is None else body,
            headers or {},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        status, body, headers = self._responses.get(
            (request.method, table), (200, [], {})
        )
        return httpx.Response(status, json=body, headers=headers)

    def calls(self, method: str, table: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path.endswith(f"/{table}")
        ]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def postgrest() -> FakePostgrest:
    return FakePostgrest()
