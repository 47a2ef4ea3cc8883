"""
Backend-as-a-service client (Supabase REST surface).

MedShare delegates persistence, auth and file storage to a hosted Supabase project.
This client speaks its HTTP APIs directly over one shared `httpx.AsyncClient`:

- tables + RPC via PostgREST (`/rest/v1`)
- object storage (`/storage/v1`)
- auth via GoTrue (`/auth/v1`)

Only the operations MedShare uses are implemented. Every non-2xx answer and every
transport failure surfaces as `BackendError`, so callers have a single exception type
to handle (the repository turns it into an error descriptor, the API into a 502).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from medshare.config.settings import Settings
from medshare.core.http import build_async_client, decode_json

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
NO_ROWS = "PGRST116"


class BackendError(Exception):
    """A failed backend call (HTTP error status or transport failure)."""

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


def _error_from_response(resp: httpx.Response) -> BackendError:
    # PostgREST, GoTrue and Storage each shape their error bodies differently.
    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return BackendError(resp.text or resp.reason_phrase, status=resp.status_code)

    message = next(
        (str(body[k]) for k in ("message", "msg", "error_description", "error") if body.get(k)),
        resp.reason_phrase,
    )
    code = next(
        (str(body[k]) for k in ("code", "error_code", "statusCode") if body.get(k) is not None),
        None,
    )
    return BackendError(message, code=code, status=resp.status_code)


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class SupabaseClient:
    """Thin async client; build once per process and pass it where it is needed."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        *,
        timeout_seconds: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
        http: httpx.AsyncClient | None = None,
        access_token: str | None = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self._access_token = access_token
        self._http = http or build_async_client(
            self.url,
            headers={"apikey": anon_key},
            timeout_seconds=timeout_seconds,
            transport=transport,
        )
        self._session: dict[str, Any] | None = None
        self.auth = AuthApi(self)

        if http is None and not (self.url and anon_key):
            logger.warning(
                "Backend URL/anon key not configured; set SUPABASE_URL and SUPABASE_ANON_KEY. "
                "Backend calls will fail until then."
            )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> "SupabaseClient":
        return cls(
            settings.backend.url,
            settings.backend.anon_key,
            timeout_seconds=settings.app.http_timeout_seconds,
            transport=transport,
        )

    def as_user(self, access_token: str) -> "SupabaseClient":
        """Same connection pool, but requests carry the user's JWT (row-level security)."""
        return SupabaseClient(self.url, self.anon_key, http=self._http, access_token=access_token)

    async def aclose(self) -> None:
        await self._http.aclose()

    def table(self, name: str) -> "TableQuery":
        return TableQuery(self, name)

    def storage(self, bucket: str) -> "StorageBucket":
        return StorageBucket(self, bucket)

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self.request("POST", f"/rest/v1/rpc/{function}", json=params or {})
        return decode_json(resp)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | dict[str, str] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        """Send one request and raise `BackendError` unless it succeeded."""
        if not self.url or not self.anon_key:
            raise BackendError("Backend is not configured (SUPABASE_URL / SUPABASE_ANON_KEY missing)")

        token = access_token or self._access_token or self.anon_key
        request_headers = {"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        if headers:
            request_headers.update(headers)

        try:
            resp = await self._http.request(
                method,
                path,
                params=params,
                json=json,
                content=content,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if resp.is_error:
            raise _error_from_response(resp)
        return resp


class TableQuery:
    """PostgREST query builder: chain filters, then `await execute()`."""

    def __init__(self, client: SupabaseClient, table: str):
        self._client = client
        self._table = table
        self._method = "GET"
        self._params: list[tuple[str, str]] = []
        self._order: list[str] = []
        self._body: Any = None
        self._headers: dict[str, str] = {}
        self._maybe_single = False

    def select(self, columns: str = "*") -> "TableQuery":
        self._method = "GET"
        self._params.append(("select", "".join(columns.split())))
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]], *, returning: bool = True) -> "TableQuery":
        self._method = "POST"
        self._body = rows if isinstance(rows, list) else [rows]
        self._headers["Prefer"] = "return=representation" if returning else "return=minimal"
        return self

    def delete(self) -> "TableQuery":
        self._method = "DELETE"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._params.append((column, f"eq.{_filter_value(value)}"))
        return self

    def match(self, criteria: dict[str, Any]) -> "TableQuery":
        for column, value in criteria.items():
            self.eq(column, value)
        return self

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        # `*` is PostgREST's URL-safe spelling of the SQL `%` wildcard.
        self._params.append((column, f"ilike.{pattern.replace('%', '*')}"))
        return self

    def order(self, column: str, *, ascending: bool = True) -> "TableQuery":
        self._order.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, count: int) -> "TableQuery":
        self._params.append(("limit", str(int(count))))
        return self

    def single(self) -> "TableQuery":
        """Expect exactly one row; zero rows raise `BackendError(code="PGRST116")`."""
        self._headers["Accept"] = "application/vnd.pgrst.object+json"
        return self

    def maybe_single(self) -> "TableQuery":
        """Return the first row or None."""
        self._maybe_single = True
        return self

    async def execute(self) -> Any:
        params = list(self._params)
        if self._order:
            params.append(("order", ",".join(self._order)))
        resp = await self._client.request(
            self._method,
            f"/rest/v1/{self._table}",
            params=params,
            json=self._body,
            headers=self._headers or None,
        )
        data = decode_json(resp)
        if self._maybe_single:
            if isinstance(data, list):
                return data[0] if data else None
            return data
        return data


class StorageBucket:
    """Object storage operations scoped to one bucket."""

    def __init__(self, client: SupabaseClient, bucket: str):
        self._client = client
        self.bucket = bucket

    async def upload(self, path: str, content: bytes, *, content_type: str, upsert: bool = False) -> str:
        """Store `content` at `path`; returns the object key."""
        await self._client.request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{path}",
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
        )
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self._client.url}/storage/v1/object/public/{self.bucket}/{path}"

    async def list(self, prefix: str = "", *, limit: int = 100) -> list[dict[str, Any]]:
        resp = await self._client.request(
            "POST",
            f"/storage/v1/object/list/{self.bucket}",
            json={"prefix": prefix, "limit": limit, "offset": 0},
        )
        return decode_json(resp) or []

    async def remove(self, paths: list[str]) -> list[dict[str, Any]]:
        if not paths:
            return []
        resp = await self._client.request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": paths},
        )
        return decode_json(resp) or []


class AuthApi:
    """GoTrue endpoints. Password handling and session issuance stay with the backend."""

    def __init__(self, client: SupabaseClient):
        self._client = client

    async def sign_up(self, email: str, password: str) -> dict[str, Any]:
        resp = await self._client.request(
            "POST", "/auth/v1/signup", json={"email": email, "password": password}
        )
        return decode_json(resp) or {}

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        resp = await self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = decode_json(resp) or {}
        self._client._session = session
        return session

    async def sign_out(self, access_token: str | None = None) -> None:
        token = access_token or (self._client._session or {}).get("access_token")
        if token:
            await self._client.request("POST", "/auth/v1/logout", access_token=token)
        self._client._session = None

    def get_session(self) -> dict[str, Any] | None:
        """Session from the last `sign_in_with_password` on this client (CLI use)."""
        return self._client._session

    async def get_user(self, access_token: str) -> dict[str, Any]:
        resp = await self._client.request("GET", "/auth/v1/user", access_token=access_token)
        return decode_json(resp) or {}

    async def update_user(self, access_token: str, data: dict[str, Any]) -> dict[str, Any]:
        """Merge `data` into the user's metadata."""
        resp = await self._client.request(
            "PUT", "/auth/v1/user", json={"data": data}, access_token=access_token
        )
        return decode_json(resp) or {}
