"""Tests for PocketBaseRecordStore against a mocked HTTP transport."""

import json

import httpx
import pytest

from ordersub.errors import StoreError, UniqueConstraintError
from ordersub.pocketbase_store import AUTH_PATH, PocketBaseRecordStore
from ordersub.query import Query

BASE_URL = "http://pb.test"


class FakePocketBase:
    """Scripted PocketBase: records requests and answers from a queue per route."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], list[httpx.Response]] = {}
        self.logins = 0

    def queue(self, method: str, path: str, status: int = 200, body=None) -> None:
        self.responses.setdefault((method, path), []).append(
            httpx.Response(status, json=body if body is not None else {})
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == AUTH_PATH:
            self.logins += 1
            return httpx.Response(200, json={"token": f"tok{self.logins}"})
        self.requests.append(request)
        queue = self.responses.get((request.method, request.url.path)) or []
        if not queue:
            return httpx.Response(404, json={"message": "not found"})
        return queue.pop(0) if len(queue) > 1 else queue[0]


@pytest.fixture
def pb():
    return FakePocketBase()


@pytest.fixture
def store(pb):
    return PocketBaseRecordStore(
        BASE_URL,
        admin_email="admin@test.dev",
        admin_password="secret",
        transport=httpx.MockTransport(pb.handler),
    )


def page(items, total_pages=1):
    return {"page": 1, "perPage": 200, "totalPages": total_pages, "items": items}


class TestList:
    def test_sends_filter_sort_and_auth(self, pb, store):
        pb.queue("GET", "/api/collections/registrations/records", body=page([{"id": "r1"}]))

        items = store.list("registrations", Query().eq("chat_id", "42").order_by("-timestamp").take(5))

        assert items == [{"id": "r1"}]
        request = pb.requests[0]
        assert request.headers["Authorization"] == "AdminAuth tok1"
        assert request.url.params["filter"] == '(chat_id="42")'
        assert request.url.params["sort"] == "-timestamp"
        assert request.url.params["perPage"] == "5"

    def test_reads_are_cached_until_a_write(self, pb, store):
        pb.queue("GET", "/api/collections/config/records", body=page([{"key": "a", "value": "1"}]))
        pb.queue("POST", "/api/collections/config/records", body={"id": "new", "key": "b"})

        store.list("config")
        store.list("config")
        assert len(pb.requests) == 1

        store.create("config", {"key": "b"})
        store.list("config")
        assert [r.method for r in pb.requests] == ["GET", "POST", "GET"]

    def test_cached_results_are_copies(self, pb, store):
        pb.queue("GET", "/api/collections/config/records", body=page([{"key": "a", "value": "1"}]))

        store.list("config")[0]["value"] = "changed"

        assert store.list("config")[0]["value"] == "1"

    def test_paginates(self, pb, store):
        path = "/api/collections/provinces/records"
        pb.queue("GET", path, body=page([{"name": "Fars"}], total_pages=2))
        pb.queue("GET", path, body=page([{"name": "Tehran"}], total_pages=2))

        names = [r["name"] for r in store.list("provinces")]

        assert names == ["Fars", "Tehran"]
        assert [r.url.params["page"] for r in pb.requests] == ["1", "2"]

    def test_http_error_raises(self, pb, store):
        pb.queue("GET", "/api/collections/config/records", status=500)

        with pytest.raises(StoreError):
            store.list("config")

    def test_timeout_raises(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        store = PocketBaseRecordStore(BASE_URL, transport=httpx.MockTransport(handler))

        with pytest.raises(StoreError) as exc:
            store.list("config")
        assert "timed out" in str(exc.value)

    def test_relogin_on_expired_token(self, pb, store):
        path = "/api/collections/config/records"
        pb.queue("GET", path, status=401)
        pb.queue("GET", path, body=page([]))

        assert store.list("config") == []
        assert pb.logins == 2
        assert pb.requests[-1].headers["Authorization"] == "AdminAuth tok2"


class TestWrites:
    def test_get_missing_returns_none(self, store):
        assert store.get("plans_new", "missing") is None

    def test_create_posts_json(self, pb, store):
        pb.queue("POST", "/api/collections/registrations/records", body={"id": "r1", "order_id": "N-1001"})

        record = store.create("registrations", {"order_id": "N-1001"})

        assert record["id"] == "r1"
        assert json.loads(pb.requests[0].content) == {"order_id": "N-1001"}

    def test_not_unique_maps_to_unique_constraint_error(self, pb, store):
        pb.queue(
            "POST",
            "/api/collections/registrations/records",
            status=400,
            body={"data": {"trial_key": {"code": "validation_not_unique", "message": "Value must be unique."}}},
        )

        with pytest.raises(UniqueConstraintError) as exc:
            store.create("registrations", {"order_id": "T-1", "trial_key": "42"})
        assert exc.value.fields == ("trial_key",)

    def test_update_patches(self, pb, store):
        pb.queue("PATCH", "/api/collections/registrations/records/r1", body={"id": "r1", "warned": True})

        assert store.update("registrations", "r1", {"warned": True})["warned"] is True
        assert pb.requests[0].method == "PATCH"


class TestIncrement:
    def test_first_value(self, pb, store):
        path = "/api/collections/counters/records"
        pb.queue("GET", path, body=page([]))
        pb.queue("POST", path, body={"id": "c1", "key": "order", "value": 1001})

        assert store.increment("counters", "order", 1000) == 1001
        assert json.loads(pb.requests[-1].content) == {"key": "order", "value": 1001}

    def test_retries_when_value_claimed(self, pb, store):
        path = "/api/collections/counters/records"
        pb.queue("GET", path, body=page([{"key": "order", "value": 1005}]))
        pb.queue("GET", path, body=page([{"key": "order", "value": 1006}]))
        pb.queue("POST", path, status=400, body={"data": {"value": {"code": "validation_not_unique"}}})
        pb.queue("POST", path, body={"id": "c2", "key": "order", "value": 1007})

        assert store.increment("counters", "order", 1000) == 1007

    def test_gives_up_after_repeated_conflicts(self, pb, store):
        path = "/api/collections/counters/records"
        pb.queue("GET", path, body=page([{"key": "order", "value": 1005}]))
        pb.queue("POST", path, status=400, body={"data": {"value": {"code": "validation_not_unique"}}})

        with pytest.raises(StoreError):
            store.increment("counters", "order", 1000)
