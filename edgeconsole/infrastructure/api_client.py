"""
REST API client utilities for the house-edge console.

Builds configured `httpx.Client` instances for the admin API and unwraps the
`{success, data, message}` envelope every endpoint returns. Transport failures
map to `StoreUnavailableError` (the caller may degrade to demonstration mode);
HTTP error statuses and `success: false` envelopes map to `StoreError`.

Mutating requests are never retried automatically: a timeout after the server
accepted a bulk insert would otherwise duplicate the batch.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from edgeconsole.config import get_settings
from edgeconsole.errors import RuleNotFoundError, StoreError, StoreUnavailableError
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)


def build_client(
    base_url: Optional[str] = None,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    Create an `httpx.Client` for the admin API from explicit values or settings.
    """
    settings = get_settings()
    headers = {"Accept": "application/json"}
    token = token if token is not None else settings.api_token
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        base_url=(base_url or settings.api_base_url).rstrip("/"),
        headers=headers,
        timeout=timeout if timeout is not None else settings.api_timeout_seconds,
        transport=transport,
    )


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Any] = None,
    rule_id: Optional[str] = None,
) -> Any:
    """
    Perform a request and return the envelope's `data` member.

    Parameters
    ----------
    rule_id : str, optional
        When set, a 404 response raises RuleNotFoundError for this id.
    """
    try:
        response = client.request(method, url, params=params, json=json)
    except (httpx.ConnectError, httpx.TimeoutException) as exc:
        log.warning(
            "Admin API unreachable",
            extra={"method": method, "url": url, "error": str(exc)},
        )
        raise StoreUnavailableError(
            "House edge API is unavailable", details={"url": url, "error": str(exc)}
        ) from exc
    except httpx.HTTPError as exc:
        raise StoreError(f"{method} {url} failed: {exc}", details={"url": url}) from exc

    if response.status_code == 404 and rule_id is not None:
        raise RuleNotFoundError(rule_id)
    if response.is_error:
        log.error(
            "Admin API error",
            extra={"method": method, "url": url, "status_code": response.status_code},
        )
        raise StoreError(
            f"{method} {url} returned HTTP {response.status_code}",
            details={"status_code": response.status_code, "body": response.text[:500]},
        )

    if not response.content:
        return None
    try:
        payload = response.json()
    except ValueError as exc:
        raise StoreError(f"{method} {url} returned a non-JSON body", details={"url": url}) from exc

    if isinstance(payload, dict) and "success" in payload:
        if not payload.get("success"):
            raise StoreError(
                payload.get("message") or f"{method} {url} was rejected",
                details={"url": url},
            )
        return payload.get("data")
    return payload


__all__ = ["build_client", "request_json"]
