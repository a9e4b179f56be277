"""REST history store client (`/history` routes of the hosted backend)."""
import httpx
from pydantic import ValidationError as PydanticValidationError

from ports.history import HistoryStorePort
from domain.models import Session
from domain.exceptions import AdapterError


class HttpHistoryStore(HistoryStorePort):
    """
    Adapter for the hosted per-user history API.

    GET /history, POST /history, DELETE /history/{id}, PUT /history/{id}.
    A 404 on delete or rename means the session is already gone.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.strip().rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @property
    def storage_type(self) -> str:
        return "http"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def list_sessions(self) -> list[Session]:
        try:
            async with self._client() as client:
                response = await client.get("/history")
                response.raise_for_status()
                sessions = [Session.model_validate(item) for item in response.json() or []]
            sessions.sort(key=lambda s: s.timestamp, reverse=True)
            return sessions
        except (httpx.HTTPError, ValueError, PydanticValidationError) as e:
            raise AdapterError("HttpHistoryStore", "list_sessions", e)

    async def save(self, session: Session) -> str:
        try:
            async with self._client() as client:
                response = await client.post("/history", json=session.to_json_dict())
                response.raise_for_status()
            return session.id
        except httpx.HTTPError as e:
            raise AdapterError("HttpHistoryStore", "save", e)

    async def delete(self, session_id: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.delete(f"/history/{session_id}")
                if response.status_code == 404:
                    return False
                response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            raise AdapterError("HttpHistoryStore", "delete", e)

    async def rename(self, session_id: str, new_query: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.put(f"/history/{session_id}", json={"newName": new_query})
                if response.status_code == 404:
                    return False
                response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            raise AdapterError("HttpHistoryStore", "rename", e)
