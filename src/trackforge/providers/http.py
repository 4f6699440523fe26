"""Shared httpx plumbing for the HTTP collaborators."""

import logging
import os
from typing import Any

import httpx

from ..generation.errors import ServiceAPIError, ServiceAuthError

logger = logging.getLogger(__name__)


def require_api_key(api_key: str | None, env_var: str, service: str) -> str:
    """Return ``api_key`` or the value of ``env_var``.

    Raises:
        ServiceAuthError: If neither is set
    """
    key = api_key or os.getenv(env_var)
    if not key:
        raise ServiceAuthError(
            f"{service} API key not found. Set {env_var} environment "
            "variable or provide api_key parameter."
        )
    return key


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str,
    **kwargs: Any,
) -> Any:
    """Send a request and decode the JSON body.

    Raises:
        ServiceAuthError: On 401/403
        ServiceAPIError: On other HTTP errors, network failures or a
            non-JSON body
    """
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        detail = e.response.text[:200]
        if status in (401, 403):
            raise ServiceAuthError(f"{service} authentication failed: {detail}", e) from e
        if status == 429:
            raise ServiceAPIError(f"{service} rate limit exceeded: {detail}", 429, e) from e
        if status >= 500:
            raise ServiceAPIError(f"{service} server error {status}: {detail}", status, e) from e
        raise ServiceAPIError(f"{service} API call failed ({status}): {detail}", status, e) from e
    except httpx.RequestError as e:
        raise ServiceAPIError(f"{service} unreachable: {e}", original_error=e) from e

    try:
        return response.json()
    except ValueError as e:
        raise ServiceAPIError(
            f"{service} returned an invalid response: {response.text[:200]}",
            response.status_code,
            e,
        ) from e
