"""
Discovery from a REST plugin listing API.

One GET against {endpoint}/{base_path}, expecting {"plugins": [...]}.
"""

import logging
from typing import Optional

import httpx

from pluginctl.core.discovery.base import discovered_from_rest, stamp
from pluginctl.lib.typed_errors import UpstreamError
from pluginctl.models.discovery import Discovered, DiscoveryType, ListPluginsResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

_HEADERS = {
    "Content-Type": "application/json; charset=utf-8",
    "Accept": "application/json; charset=utf-8",
}


class RESTDiscovery:
    """Discovers plugins from a REST endpoint."""

    def __init__(
        self,
        name: str,
        endpoint: str,
        base_path: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._name = name
        self.endpoint = endpoint
        self.base_path = base_path
        self.timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return DiscoveryType.REST.value

    @property
    def url(self) -> str:
        return f"{self.endpoint.rstrip('/')}/{self.base_path.lstrip('/')}"

    async def _get(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.get(self.url, headers=_HEADERS, timeout=self.timeout)

    async def fetch(self) -> ListPluginsResponse:
        """Fetch and decode the listing.

        Raises:
            UpstreamError: On transport failure, timeout, non-2xx status or a bad body
        """
        url = self.url
        try:
            if self._client is not None:
                response = await self._get(self._client)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._get(client)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"discovery '{self._name}' timed out after {self.timeout}s", url) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"discovery '{self._name}' request failed: {e}", url) from e

        if not response.is_success:
            raise UpstreamError(
                f"API error, status code: {response.status_code}",
                url,
                response.status_code,
            )

        try:
            return ListPluginsResponse.model_validate(response.json())
        except ValueError as e:
            raise UpstreamError(
                f"discovery '{self._name}' returned an invalid plugin listing: {e}",
                url,
                response.status_code,
            ) from e

    async def list(self) -> list[Discovered]:
        response = await self.fetch()

        plugins: list[Discovered] = []
        for entry in response.plugins:
            if not entry.name:
                logger.debug("Dropping plugin entry without a name", extra={"discovery": self._name})
                continue
            plugins.append(discovered_from_rest(entry))

        return stamp(plugins, self._name, self.type)
