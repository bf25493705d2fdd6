"""Client for the trace search API, reached through the Grafana datasource proxy.

Configuration is read from the environment (and a ``.env`` file if present):

    - GRAFANA_URL: base URL of the Grafana instance.
    - GRAFANA_API_KEY: service account token, sent as a Bearer token.
    - TRACE_VIEWER_SUPPORTS_CHILD_COUNT: whether the backend annotates spans
      with an inline ``span:childCount`` attribute.
"""

import logging
import os
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv, find_dotenv

from .errors import MissingParameterError
from .models import SearchResponse, SearchTagsResponse, TagNames
from .query import valid_end

load_dotenv(find_dotenv(usecwd=True), override=False)

logger = logging.getLogger(__name__)

API_URL = os.getenv("GRAFANA_URL", "http://localhost:3000")
API_KEY = os.getenv("GRAFANA_API_KEY", "")
SUPPORTS_CHILD_COUNT = os.getenv(
    "TRACE_VIEWER_SUPPORTS_CHILD_COUNT", "false"
).lower() in ("1", "true", "yes")

# Default timeouts for API requests (seconds)
DEFAULT_TIMEOUT = 30.0
HEALTH_TIMEOUT = 5.0


def _get_headers() -> Dict[str, str]:
    """Get default headers for API requests."""
    if not API_KEY:
        return {}
    return {"Authorization": f"Bearer {API_KEY}"}


def _proxy_url(datasource_uid: str, path: str) -> str:
    if not datasource_uid:
        raise MissingParameterError("datasource_uid")
    return f"{API_URL}/api/datasources/proxy/uid/{datasource_uid}{path}"


async def search(
    datasource_uid: str,
    query: str,
    start: int,
    end: int,
    spss: Optional[int] = None,
) -> SearchResponse:
    """Run a filter query over a time window.

    Parameters
    ----------
    datasource_uid : str
        Datasource whose proxy forwards to the query service.
    query : str
        Filter-language query.
    start, end : int
        Window in epoch seconds. ``end`` is pushed past ``start`` if needed.
    spss : Optional[int]
        Maximum spans returned per span set.

    Returns
    -------
    SearchResponse
        Parsed response; ``traces`` is empty when nothing matched.

    Raises
    ------
    httpx.HTTPStatusError
        If the API returns an error status code.
    """
    params: Dict[str, Any] = {"q": query, "start": start, "end": valid_end(start, end)}
    if spss:
        params["spss"] = spss

    logger.debug(f"search [{datasource_uid}] {query} ({start}-{params['end']})")
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        resp = await client.get(
            _proxy_url(datasource_uid, "/api/search"),
            headers=_get_headers(),
            params=params,
        )
        resp.raise_for_status()
        return SearchResponse.model_validate(resp.json())


async def search_tags(
    datasource_uid: str,
    query: str,
    start: int,
    end: int,
) -> TagNames:
    """Fetch the attribute names present on spans matching ``query``.

    Returns
    -------
    TagNames
        Span-scoped and resource-scoped attribute names.
    """
    params: Dict[str, Any] = {"q": query, "start": start, "end": valid_end(start, end)}

    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        resp = await client.get(
            _proxy_url(datasource_uid, "/api/v2/search/tags"),
            headers=_get_headers(),
            params=params,
        )
        resp.raise_for_status()
        data = SearchTagsResponse.model_validate(resp.json())
        return TagNames(
            span_tags=data.tags_for("span"),
            resource_tags=data.tags_for("resource"),
        )


async def check_health() -> bool:
    """Check if Grafana is reachable."""
    try:
        async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT) as client:
            resp = await client.get(f"{API_URL}/api/health")  # public endpoint, w/o headers
            return resp.status_code == 200

    except (httpx.RequestError, httpx.TimeoutException):
        return False


class DatasourceClient:
    """The search primitives bound to one datasource.

    This is what the tree engine talks to; tests substitute any object with
    the same ``search``/``search_tags``/``supports_child_count`` surface.
    """

    def __init__(self, datasource_uid: str, supports_child_count: bool = SUPPORTS_CHILD_COUNT):
        if not datasource_uid:
            raise MissingParameterError("datasource_uid")
        self.datasource_uid = datasource_uid
        self.supports_child_count = supports_child_count

    async def search(
        self,
        query: str,
        start: int,
        end: int,
        spss: Optional[int] = None,
    ) -> SearchResponse:
        return await search(self.datasource_uid, query, start, end, spss)

    async def search_tags(self, query: str, start: int, end: int) -> TagNames:
        return await search_tags(self.datasource_uid, query, start, end)
