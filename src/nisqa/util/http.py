from __future__ import annotations

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from nisqa.errors import RemoteServiceError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HttpClient:
    """Thin JSON-over-HTTP client shared by the remote collaborators.

    Transport failures (connection errors, timeouts) are raised as
    :class:`RemoteServiceError`; status handling is left to the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry_attempts: int = 2,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or _create_session(retry_attempts)

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: float | None = None,
    ) -> requests.Response:
        url = self.url(path)
        request_timeout = timeout or self.timeout
        try:
            response = self.session.request(
                method=method,
                url=url,
                json=json,
                timeout=request_timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as exc:
            raise RemoteServiceError(
                f"request timeout after {request_timeout}s: {method} {url}"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise RemoteServiceError(f"connection error to {url}: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise RemoteServiceError(f"request failed: {method} {url}: {exc}") from exc

        LOGGER.debug("Remote %s %s -> %d", method, url, response.status_code)
        return response

    def close(self) -> None:
        self.session.close()


def json_body(response: requests.Response, context: str) -> Any:
    """Decode a JSON body, raising :class:`RemoteServiceError` for errors or garbage."""
    if not response.ok:
        raise RemoteServiceError(f"{context}: remote answered HTTP {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteServiceError(f"{context}: response is not valid JSON") from exc


def _create_session(retry_attempts: int) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "nisqa/0.1",
        }
    )
    # POST submissions are not idempotent and are never retried
    retry_strategy = Retry(
        total=retry_attempts,
        backoff_factor=0.5,
        status_forcelist=[502, 503, 504],
        allowed_methods=["GET", "PUT"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
