"""
HTTP egress for webhook steps and API-call tools.

Any HTTP status is a normal return value; only network-level failures raise.
"""

import json
from typing import Any, Dict, Optional

import requests

from opsflow.services.errors import DeliveryError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.webhooks')


class HttpClient:
    """Thin wrapper around a requests session with JSON in and out."""

    def __init__(self, timeout: int = 15, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def request(self, method: str, url: str, json_body: Any = None,
                headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Send ``json_body`` to ``url`` and report the outcome.

        Returns:
            Dict with ``status`` (HTTP code), ``ok`` (2xx) and ``data`` (parsed
            JSON body, raw text, or None when empty)

        Raises:
            DeliveryError: connection, DNS, TLS or timeout failure
        """
        method = (method or "POST").upper()
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        payload = None if json_body is None else json.dumps(json_body, default=str)

        try:
            response = self.session.request(
                method, url, data=payload, headers=request_headers, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"HTTP {method} {url} failed: {e}", url=url, method=method)
            raise DeliveryError(f"Request to {url} failed: {e}")

        ok = 200 <= response.status_code < 300
        if not ok:
            logger.warning(
                f"HTTP {method} {url} returned {response.status_code}",
                url=url, method=method, status_code=response.status_code
            )
        return {"status": response.status_code, "ok": ok, "data": _parse_body(response)}

    def post_json(self, url: str, json_body: Any, method: str = "POST") -> Dict[str, Any]:
        return self.request(method, url, json_body=json_body)


def _parse_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
