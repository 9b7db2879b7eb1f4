"""PocketBase-backed record store for ordersub."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx

from .errors import StoreError, UniqueConstraintError
from .query import Query

logger = logging.getLogger(__name__)

AUTH_PATH = "/api/admins/auth-with-password"
PAGE_SIZE = 200
MAX_CLAIM_ATTEMPTS = 10


class PocketBaseRecordStore:
    """RecordStore over the PocketBase REST API.

    Reads are cached per (collection, filter, sort, limit) for ``cache_ttl``
    seconds; any write to a collection drops its cached reads.

    Counters are kept as claim records: ``increment`` inserts
    ``{key, value: latest + 1}`` and relies on a unique (key, value) index on
    the counters collection, retrying when another writer claimed the value
    first.
    """

    def __init__(
        self,
        base_url: str,
        admin_email: str | None = None,
        admin_password: str | None = None,
        timeout: float = 10.0,
        cache_ttl: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._admin_email = admin_email
        self._admin_password = admin_password
        self._token: str | None = None
        self._cache_ttl = cache_ttl
        self._cache: dict[tuple[str, str, str, int | None], tuple[list[dict[str, Any]], float]] = {}
        self._cache_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    # --- HTTP plumbing ---

    def _login(self) -> str | None:
        if self._token:
            return self._token
        if not self._admin_email:
            return None
        try:
            response = self._client.post(
                AUTH_PATH,
                json={"identity": self._admin_email, "password": self._admin_password},
            )
        except httpx.HTTPError as e:
            raise StoreError("login", "_admins", str(e)) from e
        if response.status_code != 200:
            raise StoreError("login", "_admins", f"HTTP {response.status_code}")
        self._token = response.json().get("token")
        return self._token

    def _request(
        self,
        method: str,
        collection: str,
        path: str = "",
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"/api/collections/{collection}/records{path}"
        for attempt in range(2):
            token = self._login()
            headers = {"Authorization": f"AdminAuth {token}"} if token else {}
            try:
                response = self._client.request(
                    method, url, params=params, json=body, headers=headers
                )
            except httpx.TimeoutException as e:
                raise StoreError(method, collection, "timed out") from e
            except httpx.HTTPError as e:
                raise StoreError(method, collection, str(e)) from e

            if response.status_code == 401 and token and attempt == 0:
                # Token expired; log in again once.
                self._token = None
                continue
            return response
        return response

    def _invalidate(self, collection: str) -> None:
        with self._cache_lock:
            for key in [k for k in self._cache if k[0] == collection]:
                del self._cache[key]

    # --- RecordStore ---

    def list(self, collection: str, query: Query | None = None, use_cache: bool = True) -> list[dict[str, Any]]:
        query = query or Query()
        cache_key = (collection, query.to_filter(), query.to_sort(), query.limit)

        if use_cache:
            with self._cache_lock:
                hit = self._cache.get(cache_key)
                if hit and time.monotonic() - hit[1] < self._cache_ttl:
                    return [dict(r) for r in hit[0]]

        items: list[dict[str, Any]] = []
        page = 1
        per_page = min(query.limit, PAGE_SIZE) if query.limit else PAGE_SIZE
        while True:
            params: dict[str, Any] = {"page": page, "perPage": per_page}
            if query.conditions:
                params["filter"] = query.to_filter()
            if query.sort:
                params["sort"] = query.to_sort()

            response = self._request("GET", collection, params=params)
            if response.status_code != 200:
                raise StoreError("list", collection, f"HTTP {response.status_code}")
            data = response.json()
            items.extend(data.get("items", []))

            if query.limit is not None and len(items) >= query.limit:
                items = items[: query.limit]
                break
            if page >= int(data.get("totalPages") or 1):
                break
            page += 1

        with self._cache_lock:
            self._cache[cache_key] = (items, time.monotonic())
        return [dict(r) for r in items]

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        response = self._request("GET", collection, path=f"/{record_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StoreError("get", collection, f"HTTP {response.status_code}")
        return response.json()

    def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        response = self._request("POST", collection, body=data)
        self._invalidate(collection)
        if response.status_code == 400:
            not_unique = _not_unique_fields(response)
            if not_unique:
                raise UniqueConstraintError(collection, not_unique)
        if response.status_code not in (200, 201):
            raise StoreError("create", collection, f"HTTP {response.status_code} {response.text}")
        return response.json()

    def update(self, collection: str, record_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        response = self._request("PATCH", collection, path=f"/{record_id}", body=patch)
        self._invalidate(collection)
        if response.status_code != 200:
            raise StoreError("update", collection, f"HTTP {response.status_code} {response.text}")
        return response.json()

    def increment(self, collection: str, key: str, start: int) -> int:
        latest_query = Query().eq("key", key).order_by("-value").take(1)
        for _ in range(MAX_CLAIM_ATTEMPTS):
            latest = self.list(collection, latest_query, use_cache=False)
            value = int(latest[0]["value"]) + 1 if latest else start + 1
            try:
                self.create(collection, {"key": key, "value": value})
                return value
            except UniqueConstraintError:
                logger.info("Counter %s value %d already claimed, retrying", key, value)
        raise StoreError("increment", collection, f"could not claim a value for {key}")


def _not_unique_fields(response: httpx.Response) -> tuple[str, ...]:
    """Extract the fields PocketBase rejected as duplicates."""
    try:
        data = response.json().get("data") or {}
    except ValueError:
        return ()
    return tuple(
        name
        for name, err in data.items()
        if isinstance(err, dict) and err.get("code") == "validation_not_unique"
    )
