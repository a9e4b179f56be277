"""HTTP client for a hosted query service (`POST /rabbitholes/search`)."""
import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ports.query import QueryServicePort
from domain.exceptions import AdapterError
from domain.models import QueryRequest, QueryResponse

SEARCH_PATH = "/rabbitholes/search"


class HttpQueryServiceAdapter(QueryServicePort):
    """
    Adapter for the hosted search endpoint.

    The endpoint does the web search, the LLM call and the follow-up
    parsing; this client only moves JSON. Connection-level failures are
    retried; HTTP error statuses are not.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.strip().rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "http"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, payload: dict) -> dict:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.post(SEARCH_PATH, json=payload)
            response.raise_for_status()
            return response.json()

    async def search(self, request: QueryRequest) -> QueryResponse:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            data = await self._post(payload)
            return QueryResponse.model_validate(data)
        except (httpx.HTTPError, ValueError, PydanticValidationError) as e:
            raise AdapterError("HttpQueryServiceAdapter", "search", e)
