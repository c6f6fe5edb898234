"""
Tests for the web routes (rendered pages and htmx partials)
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from kesslerlog.store import StoreClient
from kesslerlog.web import i18n
from kesslerlog.web.app import create_app
from kesslerlog.web.routes import settings as settings_routes
from tests.conftest import body_of

HOME_PAYLOAD = {
    "kpis": {"sessions": 4, "timeHours": 6.5, "avgSessionScore": 8.25, "streakDays": 3},
    "continue": [
        {
            "cycleId": "c1",
            "gameId": "g1",
            "game": "Zelda",
            "status": "Jogando",
            "statusSlug": "playing",
            "hours": 6.5,
            "lastSessionAt": "2024-01-24T20:00:00Z",
        }
    ],
    "timeline": [
        {"kind": "SESSION_END", "at": "2024-01-24T21:00:00Z", "cycleId": "c1", "note": "Templo da água", "score": 9},
    ],
}

CYCLE_ROW = {"id": "c1", "game_id": "g1", "status_id": "st-play", "started_at": "2024-01-20T10:00:00Z", "ended_at": None}


@pytest.fixture
def client(store):
    with TestClient(create_app(store=store)) as test_client:
        yield test_client


class TestHome:
    def test_renders_rpc_payload(self, client, backend):
        backend.on("POST", "rpc/rpc_home_dashboard", HOME_PAYLOAD)
        backend.on("GET", "games", [{"id": "g1", "cover_url": "https://img/zelda.png"}])
        backend.on("GET", "game_cycles", [{"id": "c1", "games": {"title": "Zelda"}, "game_statuses": {"name": "Jogando"}}])

        response = client.get("/")

        assert response.status_code == 200
        assert "Zelda" in response.text
        assert "https://img/zelda.png" in response.text
        assert "Templo da água" in response.text
        assert body_of(backend.sent("POST", "rpc/rpc_home_dashboard")[0]) == {"p_range_days": 7}

    def test_range_is_passed_to_rpc(self, client, backend):
        client.get("/?range=30d")

        assert body_of(backend.sent("POST", "rpc/rpc_home_dashboard")[0]) == {"p_range_days": 30}

    def test_rpc_failure_is_shown(self, client, backend):
        backend.on("POST", "rpc/rpc_home_dashboard", {"message": "function does not exist"}, status=404)

        response = client.get("/")

        assert response.status_code == 200
        assert "Falhou ao carregar via rpc_home_dashboard" in response.text


class TestGames:
    def test_lists_games(self, client, backend, statuses):
        backend.on("GET", "game_statuses", statuses)
        backend.on("GET", "games", [{"id": "g1", "title": "Celeste", "platform": "Switch"}])

        response = client.get("/games")

        assert response.status_code == 200
        assert "Celeste" in response.text

    def test_add_game(self, client, backend):
        response = client.post("/games", data={"title": "Celeste", "platform": "PC"})

        assert response.status_code == 200
        assert "Jogo adicionado ✅" in response.text
        payload = body_of(backend.sent("POST", "games")[0])
        assert payload["title"] == "Celeste"
        assert payload["platform"] == "PC"

    def test_add_game_without_title(self, client, backend):
        response = client.post("/games", data={"title": ""})

        assert "Título é obrigatório." in response.text
        assert backend.sent("POST", "games") == []

    def test_edit_game(self, client, backend):
        client.post("/games", data={"editing_id": "g9", "title": "Celeste DX"})

        assert backend.sent("PATCH", "games")[0].url.params["id"] == "eq.g9"


class TestRuns:
    def test_game_panel(self, client, backend, statuses):
        backend.on("GET", "game_statuses", statuses)
        backend.on("GET", "games", [{"id": "g1", "title": "Zelda"}])
        backend.on("GET", "game_cycles", [CYCLE_ROW])

        response = client.get("/runs?game=g1")

        assert response.status_code == 200
        assert "Zelda" in response.text
        assert 'action="/runs/g1/cycles"' in response.text

    def test_requires_user_id(self, backend):
        store = StoreClient(url="https://db.test", api_key="k", transport=httpx.MockTransport(backend))
        with TestClient(create_app(store=store)) as test_client:
            response = test_client.get("/runs")

        assert "KESSLERLOG_USER_ID" in response.text
        assert backend.requests == []


class TestReviews:
    def test_game_panel(self, client, backend, statuses):
        backend.on("GET", "game_statuses", statuses)
        backend.on("GET", "games", [{"id": "g1", "title": "Zelda"}])
        backend.on("GET", "game_cycles", [{**CYCLE_ROW, "review_text": "**Excelente**", "rating_final": 9.5}])

        response = client.get("/reviews?game=g1")

        assert response.status_code == 200
        assert "Zelda" in response.text
        assert "<strong>Excelente</strong>" in response.text

    def test_save_review(self, client, backend):
        backend.on("PATCH", "game_cycles", [{"id": "c1", "game_id": "g1"}])

        response = client.post("/reviews/cycles/c1", data={"review_text": "Bom", "rating_final": "8,5"})

        assert response.status_code == 200
        payload = body_of(backend.sent("PATCH", "game_cycles")[0])
        assert payload["review_text"] == "Bom"
        assert payload["rating_final"] == 8.5


class TestStats:
    def test_filters_from_query(self, client, backend, sample_cycle_rows):
        backend.on("GET", "vw_cycles_enriched", sample_cycle_rows)

        response = client.get("/stats?period=month&year=2024&month=1&q=zel")

        assert response.status_code == 200
        assert "Zelda" in response.text
        params = backend.sent("GET", "vw_cycles_enriched")[0].url.params
        assert params["game_title"] == "ilike.*zel*"
        assert [v[:3] for v in params.get_list("started_at")] == ["gte", "lt."]

    def test_invalid_month_is_dropped(self, client):
        client.get("/stats?month=13")

        assert client.app.state.stats.filters.month is None

    def test_year_out_of_range_is_dropped(self, client):
        response = client.get("/stats?period=year&year=9999")

        assert response.status_code == 200
        assert client.app.state.stats.filters.year is None

    def test_bad_store_row_is_reported(self, client, backend):
        backend.on(
            "GET",
            "vw_cycles_enriched",
            [
                {
                    "cycle_id": "c1",
                    "game_id": "g1",
                    "game_title": "Zelda",
                    "started_at": "2024-01-20T10:00:00Z",
                    "ended_at": "2024-01-10T10:00:00Z",
                }
            ],
        )

        response = client.get("/stats?period=all")

        assert response.status_code == 200
        assert "Resposta inválida do banco (1 erro(s))" in response.text

    def test_reset(self, client):
        client.get("/stats?period=all&q=zel")
        client.get("/stats/reset")

        filters = client.app.state.stats.filters
        assert filters.period == "last30"
        assert filters.q == ""

    def test_game_search(self, client, backend):
        backend.on("GET", "games", [{"id": "g1", "title": "Zelda", "platform": "Switch"}])

        response = client.get("/stats/games/search?q=zel")

        assert response.status_code == 200
        assert "Zelda (Switch)" in response.text
        assert backend.sent("GET", "games")[0].url.params["title"] == "ilike.*zel*"

    def test_empty_search_makes_no_request(self, client, backend):
        response = client.get("/stats/games/search?q=")

        assert response.status_code == 200
        assert backend.sent("GET", "games") == []


class TestSettings:
    @pytest.fixture(autouse=True)
    def env_file(self, tmp_path, monkeypatch):
        path = tmp_path / ".env"
        monkeypatch.setattr(settings_routes, "ENV_FILE", path)
        return path

    def test_page(self, client):
        response = client.get("/settings")

        assert response.status_code == 200
        assert "https://db.test" in response.text

    def test_save_display_language(self, client, env_file):
        response = client.post("/settings/display", data={"language": "en"})

        assert response.status_code == 200
        assert "Display saved." in response.text
        assert "DISPLAY_LANGUAGE='en'" in env_file.read_text()
        assert client.app.state.stats.no_status_label == "No status"

    def test_unknown_language_is_ignored(self, client, env_file):
        client.post("/settings/display", data={"language": "xx"})

        assert not env_file.exists()

    def test_save_store_reconnects(self, client, env_file, store):
        response = client.post(
            "/settings/store",
            data={"url": "https://other.test", "api_key": "new-key", "user_id": "user-2", "access_token": ""},
        )

        assert response.status_code == 200
        content = env_file.read_text()
        assert "KESSLERLOG_STORE_URL='https://other.test'" in content
        assert "KESSLERLOG_ACCESS_TOKEN" not in content
        assert client.app.state.store is not store
        assert client.app.state.store.url == "https://other.test"
        assert client.app.state.games.store is client.app.state.store


class TestI18n:
    def test_lookup(self):
        assert i18n.get_text("stats.no_status", "en") == "No status"
        assert i18n.get_text("stats.no_status", "xx") == "Sem status"
        assert i18n.get_text("stats.nope", "en") == "stats.nope"

    def test_missing_key_falls_back_to_portuguese(self, monkeypatch):
        monkeypatch.setitem(i18n._catalogs, "en", {"stats": {}})

        assert i18n.get_text("stats.no_status", "en") == "Sem status"
