"""Small REST client for the image generation backend.

Every response is normalized into an ``ApiEnvelope`` ``{success, data,
message, code}``. Network-level failures raise ``TransportError`` with a
cause of ``timeout``, ``offline`` or ``unknown``. HTTP error statuses do not
raise here. They come back as ``success=False`` envelopes, and the caller
decides whether to ``unwrap()`` them into a ``BusinessError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from urllib import error, parse, request

from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from aidraw_client.errors import BusinessError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class ApiEnvelope(BaseModel):
    success: bool
    data: Any = None
    message: str = ""
    code: int = 200

    def unwrap(self) -> Any:
        """Return ``data`` or raise ``BusinessError`` carrying the server message."""
        if not self.success:
            raise BusinessError(self.message or "Request failed", code=self.code)
        return self.data

    def unwrap_object(self) -> dict[str, Any]:
        """Like ``unwrap()`` but the payload must be a JSON object (null reads as empty)."""
        data = self.unwrap()
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise TransportError("Unexpected response payload", cause="unknown")
        return data


@contextmanager
def expected_payload(resource: str) -> Iterator[None]:
    """Turn a payload that fails model validation into a ``TransportError``."""
    try:
        yield
    except (PayloadValidationError, TypeError, ValueError) as exc:
        logger.warning("rest event=invalid_payload resource=%s error=%s", resource, exc)
        raise TransportError("Unexpected response payload", cause="unknown") from exc


class RestClient:
    """JSON-over-HTTP client with a per-request timeout."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}

    def get(self, path: str, params: dict[str, Any] | None = None) -> ApiEnvelope:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: dict[str, Any] | None = None) -> ApiEnvelope:
        return self.request("POST", path, body=body if body is not None else {})

    def delete(self, path: str, body: dict[str, Any] | None = None) -> ApiEnvelope:
        return self.request("DELETE", path, body=body)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> ApiEnvelope:
        url = build_url(self.base_url, path, params=params)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = request.Request(url=url, data=data, method=method, headers=self.headers)
        logger.debug("api_request event=send method=%s url=%s", method, url)

        status, raw = self._send(req)
        envelope = _to_envelope(status, raw)
        logger.debug(
            "api_request event=done method=%s url=%s status=%s success=%s",
            method,
            url,
            status,
            envelope.success,
        )
        return envelope

    def get_text(self, url: str, params: dict[str, Any] | None = None) -> str:
        """GET an absolute URL and return the raw body as text."""
        full_url = build_url(url, "", params=params)
        headers = {key: value for key, value in self.headers.items() if key != "Content-Type"}
        req = request.Request(url=full_url, method="GET", headers={**headers, "Accept": "text/plain"})
        status, raw = self._send(req)
        if not 200 <= status < 300:
            raise BusinessError(f"HTTP {status}", code=status)
        return raw

    def _send(self, req: request.Request) -> tuple[int, str]:
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                status = int(getattr(response, "status", 200) or 200)
                raw = response.read().decode("utf-8", errors="replace")
        except error.HTTPError as exc:
            return exc.code, exc.read().decode("utf-8", errors="replace")
        except TimeoutError as exc:
            logger.warning("api_request event=timeout url=%s timeout_s=%s", req.full_url, self.timeout_s)
            raise TransportError("Request timed out", cause="timeout") from exc
        except error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                logger.warning(
                    "api_request event=timeout url=%s timeout_s=%s", req.full_url, self.timeout_s
                )
                raise TransportError("Request timed out", cause="timeout") from exc
            logger.warning("api_request event=offline url=%s reason=%s", req.full_url, exc.reason)
            raise TransportError("Network connection failed", cause="offline") from exc
        except OSError as exc:
            logger.warning("api_request event=error url=%s reason=%s", req.full_url, exc)
            raise TransportError("Unknown network error", cause="unknown") from exc
        return status, raw


def build_url(base_url: str, path: str, *, params: dict[str, Any] | None = None) -> str:
    url = f"{base_url}{path}"
    if not params:
        return url
    encoded = parse.urlencode(
        {key: _query_value(value) for key, value in params.items() if value is not None},
        doseq=True,
    )
    if not encoded:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{encoded}"


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _to_envelope(status: int, raw: str) -> ApiEnvelope:
    ok = 200 <= status < 300
    payload: Any = None
    if raw.strip():
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            if ok:
                raise TransportError("Response parsing failed", cause="unknown") from exc
            return ApiEnvelope(success=False, message=f"HTTP {status}", code=status)

    if ok:
        if isinstance(payload, dict) and "success" in payload:
            return ApiEnvelope(
                success=bool(payload["success"]),
                data=payload.get("data"),
                message=str(payload.get("message") or ""),
                code=_as_code(payload.get("code"), default=status),
            )
        return ApiEnvelope(success=True, data=payload, code=status)

    message = payload.get("message") if isinstance(payload, dict) else None
    return ApiEnvelope(
        success=False,
        data=payload,
        message=str(message or f"HTTP {status}"),
        code=status,
    )


def _as_code(value: Any, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
