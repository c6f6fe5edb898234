"""
Tests for the store client (request building and error mapping)
"""
import httpx
import pytest

from kesslerlog.store import StoreClient, StoreError
from tests.conftest import body_of


class TestQueryBuilding:
    def test_select_with_filters_and_order(self, store, backend):
        backend.on("GET", "games", [{"id": "g1", "title": "Zelda"}])

        rows = (
            store.table("games")
            .select("id, title")
            .eq("platform", "Switch")
            .ilike("title", "%zel%")
            .order("title")
            .order("created_at", desc=True)
            .limit(20)
            .execute()
        )

        assert rows == [{"id": "g1", "title": "Zelda"}]
        request = backend.requests[0]
        params = request.url.params
        assert request.url.path == "/rest/v1/games"
        assert params["select"] == "id,title"
        assert params["platform"] == "eq.Switch"
        assert params["title"] == "ilike.*zel*"
        assert params["order"] == "title.asc,created_at.desc"
        assert params["limit"] == "20"
        assert request.headers["Accept-Profile"] == "kesslerlog"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer anon-key"

    def test_null_filters_and_in_list(self, store, backend):
        store.table("play_sessions").select("id").is_null("ended_at").not_null("score").in_(
            "cycle_id", ["c1", "c,2"]
        ).execute()

        params = backend.requests[0].url.params
        assert params["ended_at"] == "is.null"
        assert params["score"] == "not.is.null"
        assert params["cycle_id"] == 'in.(c1,"c,2")'

    def test_range_sets_offset_and_limit(self, store, backend):
        store.table("vw_cycles_enriched").select("*").range(10, 19).execute()

        params = backend.requests[0].url.params
        assert params["offset"] == "10"
        assert params["limit"] == "10"

    def test_upsert(self, store, backend):
        store.table("external_ratings").upsert({"source": "igdb"}, on_conflict="user_id,game_id,source").execute()

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.params["on_conflict"] == "user_id,game_id,source"
        assert "resolution=merge-duplicates" in request.headers["Prefer"]
        assert "return=representation" in request.headers["Prefer"]
        assert request.headers["Content-Profile"] == "kesslerlog"
        assert body_of(request) == {"source": "igdb"}

    def test_update_and_delete(self, store, backend):
        store.table("games").update({"title": "New"}, returning=False).eq("id", "g1").execute()
        store.table("games").delete().eq("id", "g1").execute()

        update, delete = backend.requests
        assert update.method == "PATCH"
        assert update.headers["Prefer"] == "return=minimal"
        assert delete.method == "DELETE"
        assert delete.url.params["id"] == "eq.g1"

    def test_access_token_is_the_bearer(self, backend):
        client = StoreClient(
            url="https://db.test/",
            api_key="anon-key",
            access_token="user-jwt",
            transport=httpx.MockTransport(backend),
        )
        client.table("games").select().execute()

        request = backend.requests[0]
        assert str(request.url).startswith("https://db.test/rest/v1/games")
        assert request.headers["Authorization"] == "Bearer user-jwt"


class TestResponses:
    def test_single_returns_one_row(self, store, backend):
        backend.on("GET", "game_cycles", [{"id": "c1"}])

        assert store.table("game_cycles").select("id").eq("id", "c1").single().execute() == {"id": "c1"}

    def test_single_without_rows(self, store, backend):
        with pytest.raises(StoreError) as excinfo:
            store.table("game_cycles").select("id").eq("id", "nope").single().execute()

        assert excinfo.value.code == "PGRST116"

    def test_empty_body_is_empty_list(self, store, backend):
        backend.on("DELETE", "games", None, status=204)

        assert store.table("games").delete().eq("id", "g1").execute() == []

    def test_error_response(self, store, backend):
        backend.on(
            "POST",
            "games",
            {"code": "23505", "message": "duplicate key value", "details": "Key (title) already exists."},
            status=409,
        )

        with pytest.raises(StoreError) as excinfo:
            store.table("games").insert({"title": "Zelda"}).execute()

        assert excinfo.value.status_code == 409
        assert excinfo.value.code == "23505"
        assert str(excinfo.value) == "duplicate key value (Key (title) already exists.)"

    def test_error_without_json(self, store, backend):
        backend.on("GET", "games", None, status=502)

        with pytest.raises(StoreError, match="HTTP 502"):
            store.table("games").select().execute()

    def test_transport_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = StoreClient(url="https://db.test", api_key="k", transport=httpx.MockTransport(boom))
        with pytest.raises(StoreError, match="connection refused"):
            client.table("games").select().execute()

    def test_rpc(self, store, backend):
        backend.on("POST", "rpc/rpc_home_dashboard", {"kpis": {"sessions": 2}})

        assert store.rpc("rpc_home_dashboard", {"p_range_days": 7}) == {"kpis": {"sessions": 2}}
        assert body_of(backend.requests[0]) == {"p_range_days": 7}


class TestConfiguration:
    def test_unconfigured_client_fails_on_request(self):
        client = StoreClient()

        assert not client.configured
        with pytest.raises(StoreError, match="not configured"):
            client.table("games").select().execute()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("KESSLERLOG_STORE_URL", "https://env.test")
        monkeypatch.setenv("KESSLERLOG_STORE_KEY", "env-key")
        monkeypatch.setenv("KESSLERLOG_USER_ID", "user-env")

        client = StoreClient()

        assert client.configured
        assert client.url == "https://env.test"
        assert client.user_id == "user-env"
        assert client.schema == "kesslerlog"
