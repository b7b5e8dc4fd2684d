"""HTTP client for the remote data service.

This module provides:
- RemoteService: Protocol the sync engine depends on
- RemoteDataService: httpx-based REST implementation
- APIError and subclasses: the remote error taxonomy

Error taxonomy:
    NetworkError       connection/timeout failure, transient
    RemoteServerError  5xx, transient
    RemoteNotFound     404, entity deleted remotely
    RemoteRejected     other 4xx, permanent
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from offlinesync.core.config import ServerConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(APIError):
    """Request never got a response (offline, DNS, timeout)."""


class RemoteNotFound(APIError):
    """Entity does not exist on the server."""


class RemoteRejected(APIError):
    """Server refused the request (4xx other than 404)."""


class RemoteServerError(APIError):
    """Server failed to handle the request (5xx)."""


# Errors expected to clear up without changing the request
NETWORK_ERRORS: tuple[type[Exception], ...] = (NetworkError, RemoteServerError)


class RemoteService(Protocol):
    """Interface of the remote data service used by the sync engine."""

    async def get(self, entity_type: str, entity_id: str | None = None) -> Any:
        """Fetch one entity, or the collection when entity_id is None."""
        ...

    async def create(self, entity_type: str, payload: Any) -> Any:
        """Create an entity and return the stored representation."""
        ...

    async def update(self, entity_type: str, entity_id: str, payload: Any) -> Any:
        """Replace an entity and return the stored representation."""
        ...

    async def delete(self, entity_type: str, entity_id: str) -> None:
        """Delete an entity."""
        ...


def _detail(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict):
        return str(data.get("detail", default))
    return default


class RemoteDataService:
    """REST client for the remote data service.

    Routes:
        GET    /api/{entity_type}            list entities
        GET    /api/{entity_type}/{id}       fetch entity
        POST   /api/{entity_type}            create entity
        PUT    /api/{entity_type}/{id}       replace entity
        DELETE /api/{entity_type}/{id}       delete entity
    """

    def __init__(
        self,
        config: ServerConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server configuration (URL, token, timeout, SSL).
            client: Optional preconfigured httpx client (not closed by us).
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
        )

    @property
    def config(self) -> ServerConfig:
        """Get the server configuration."""
        return self._config

    async def close(self) -> None:
        """Close the HTTP client if we created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RemoteDataService:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Raise the taxonomy exception matching a failed response."""
        status = response.status_code
        if status == 404:
            raise RemoteNotFound(_detail(response, "Resource not found"), 404)
        if 400 <= status < 500:
            raise RemoteRejected(_detail(response, "Request rejected"), status)
        if status >= 500:
            raise RemoteServerError(_detail(response, "Server error"), status)
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %s", method, url, e)
            raise NetworkError(f"{method} {url} failed: {e}") from e
        return self._handle_response(response)

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    # === Health check ===

    async def health_check(self) -> bool:
        """Check if the server is reachable and healthy."""
        try:
            response = await self._client.get("/health")
            return response.status_code == 200
        except httpx.RequestError:
            return False

    # === Entity operations ===

    async def get(self, entity_type: str, entity_id: str | None = None) -> Any:
        """Fetch an entity (or the whole collection).

        Raises:
            RemoteNotFound: If the entity does not exist.
        """
        url = f"/api/{entity_type}" if entity_id is None else f"/api/{entity_type}/{entity_id}"
        return self._body(await self._request("GET", url))

    async def create(self, entity_type: str, payload: Any) -> Any:
        """Create an entity."""
        return self._body(await self._request("POST", f"/api/{entity_type}", json=payload))

    async def update(self, entity_type: str, entity_id: str, payload: Any) -> Any:
        """Replace an entity.

        Raises:
            RemoteNotFound: If the entity does not exist.
        """
        return self._body(
            await self._request("PUT", f"/api/{entity_type}/{entity_id}", json=payload)
        )

    async def delete(self, entity_type: str, entity_id: str) -> None:
        """Delete an entity.

        Raises:
            RemoteNotFound: If the entity does not exist.
        """
        await self._request("DELETE", f"/api/{entity_type}/{entity_id}")
