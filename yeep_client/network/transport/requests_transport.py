"""HTTP transport backed by a pooled ``requests`` session."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests
from requests import Response

from yeep_client.config import ClientSettings
from yeep_client.errors import RequestTimeoutError, TransportError
from yeep_client.network.cancellation import CancelHandle
from yeep_client.network.transport.base import BaseTransport, RawResponse, race_cancel

LOGGER = logging.getLogger(__name__)


class RequestsTransport(BaseTransport):
    """Runs blocking ``requests`` calls in a worker thread.

    The underlying ``requests.Session`` keeps connections alive between calls and
    stores cookies set by the service, which is what cookie sessions rely on.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = str(settings.base_url).rstrip("/")
        self._timeout_seconds = float(settings.request_timeout_seconds)
        self._session = session or requests.Session()

    @property
    def cookies(self) -> requests.cookies.RequestsCookieJar:
        return self._session.cookies

    async def send(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str],
        body: Any = None,
        cancel: Optional[CancelHandle] = None,
    ) -> RawResponse:
        url = self._build_url(path)
        LOGGER.debug("HTTP %s %s", method.upper(), url)
        call = asyncio.to_thread(
            self._request,
            method.upper(),
            url,
            dict(headers),
            body,
        )
        response = await race_cancel(call, cancel)
        return self._decode(response)

    async def close(self) -> None:
        self._session.close()

    def _request(self, method: str, url: str, headers: dict[str, str], body: Any) -> Response:
        try:
            return self._session.request(
                method,
                url,
                headers=headers,
                json=body if method != "GET" else None,
                timeout=self._timeout_seconds,
            )
        except requests.Timeout as exc:
            raise RequestTimeoutError(f"Request to {url} timed out after {self._timeout_seconds}s") from exc
        except requests.RequestException as exc:
            raise TransportError(str(exc)) from exc

    def _build_url(self, path: str) -> str:
        return urljoin(f"{self._base_url}/", path.lstrip("/"))

    @staticmethod
    def _decode(response: Response) -> RawResponse:
        status = response.status_code
        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError as exc:
                if status >= 400:
                    raise TransportError(f"Request failed with status {status}.", status_code=status) from exc
                raise TransportError("Service returned invalid JSON.", status_code=status) from exc
        if status >= 400 and not (isinstance(data, dict) and data.get("ok") is False):
            raise TransportError(f"Request failed with status {status}.", status_code=status)
        LOGGER.debug("HTTP response status=%s", status)
        return RawResponse(status_code=status, data=data, headers=dict(response.headers))
