"""
Pytest fixtures and configuration for Kesslerlog tests
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from kesslerlog.store import StoreClient

FIXED_NOW = datetime(2024, 1, 25, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    """Stand-in for the REST endpoint of the store.

    Responses are queued per ``(method, table)``; the last one queued keeps
    being served. Routes with nothing queued answer ``200 []``.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, table: str, body=None, status: int = 200) -> "FakeBackend":
        self.routes.setdefault((method, table), []).append((status, body))
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.split("/rest/v1/", 1)[-1]
        queue = self.routes.get((request.method, table))
        if not queue:
            return httpx.Response(200, json=[])
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(body):
            body = body(request)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def sent(self, method: str, table: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(f"/rest/v1/{table}")]


def body_of(request: httpx.Request):
    """Decoded JSON body of a captured request."""
    return json.loads(request.content) if request.content else None


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's store settings out of the tests."""
    for key in (
        "KESSLERLOG_STORE_URL",
        "KESSLERLOG_STORE_KEY",
        "KESSLERLOG_ACCESS_TOKEN",
        "KESSLERLOG_USER_ID",
        "KESSLERLOG_SCHEMA",
        "DISPLAY_LANGUAGE",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store(backend):
    client = StoreClient(
        url="https://db.test",
        api_key="anon-key",
        user_id="user-1",
        schema="kesslerlog",
        transport=httpx.MockTransport(backend),
    )
    yield client
    client.close()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sample_cycle_rows():
    """Two rated cycles in January 2024 (one with session aggregates)."""
    return [
        {
            "cycle_id": "c1",
            "game_id": "g1",
            "game_title": "Zelda",
            "status_name": "Finalizado",
            "started_at": "2024-01-05T10:00:00Z",
            "ended_at": "2024-01-18T22:00:00Z",
            "rating_final": 10.0,
            "review_text": "Obra-prima.",
            "sessions_count_finished": 3,
            "total_minutes_finished": 180,
            "avg_session_minutes_finished": 60,
            "avg_score_finished": 9.5,
        },
        {
            "cycle_id": "c2",
            "game_id": "g2",
            "game_title": "Hades",
            "status_name": "Jogando",
            "started_at": "2024-01-20T10:00:00Z",
            "ended_at": None,
            "rating_final": 7.9,
        },
    ]


@pytest.fixture
def statuses():
    return [
        {"id": "st-play", "name": "Jogando", "slug": "playing", "sort_order": 10, "is_active": True},
        {"id": "st-done", "name": "Finalizado", "slug": "finished", "sort_order": 40, "is_active": True},
    ]
