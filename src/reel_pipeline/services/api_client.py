"""Shared HTTP client for the external script and speech providers."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import ProviderError
from ..logging_config import LoggerMixin


TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class ApiClient(LoggerMixin):
    """HTTP client that maps every failure onto ``ProviderError``.

    Connection establishment is retried by the transport; status and read
    failures are classified as transient or permanent and left to the stage
    adapter's retry policy.
    """

    def __init__(self, provider: str, base_url: str, timeout: float, api_key: Optional[str] = None):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        retries = Retry(
            total=2,
            connect=2,
            read=0,
            status=0,
            backoff_factor=0.5,
            allowed_methods=frozenset(["GET", "POST"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self.session = requests.Session()
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"

    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST JSON body and return JSON object response."""
        response = self._request("POST", path, json=payload)
        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.provider} returned a non-JSON body",
                provider=self.provider,
                status_code=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise ProviderError(
                f"{self.provider} returned an unexpected payload",
                provider=self.provider,
                status_code=response.status_code,
            )
        return body

    def post_for_bytes(self, path: str, payload: Dict[str, Any]) -> Tuple[bytes, Dict[str, str]]:
        """POST JSON body and return the raw response body with its headers."""
        response = self._request("POST", path, json=payload)
        return response.content, dict(response.headers)

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._to_url(path)
        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise ProviderError(
                f"{self.provider} timed out after {self.timeout}s",
                provider=self.provider,
                transient=True,
            ) from e
        except requests.ConnectionError as e:
            raise ProviderError(
                f"{self.provider} unreachable: {e}",
                provider=self.provider,
                transient=True,
            ) from e
        except requests.RequestException as e:
            raise ProviderError(f"{self.provider} request failed: {e}", provider=self.provider) from e

        if response.status_code >= 400:
            transient = response.status_code in TRANSIENT_STATUS_CODES or response.status_code >= 500
            raise ProviderError(
                f"{self.provider} responded {response.status_code}: {self._error_detail(response)}",
                provider=self.provider,
                transient=transient,
                status_code=response.status_code,
            )

        self.logger.debug("Provider call succeeded", provider=self.provider, url=url,
                          status_code=response.status_code)
        return response

    def _to_url(self, path_or_url: str) -> str:
        if path_or_url.startswith("http://") or path_or_url.startswith("https://"):
            return path_or_url
        if path_or_url.startswith("/"):
            return f"{self.base_url}{path_or_url}"
        return f"{self.base_url}/{path_or_url}"

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        text = (response.text or "").strip()
        return text[:200] if text else (response.reason or "no detail")
