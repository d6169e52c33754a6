from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class Transport(Protocol):
    def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        ...


class RequestsTransport:
    """Shared requests session with a pooled adapter.

    Only connection establishment is retried here (cheap, nothing was sent).
    Status-based retries and backoff belong to the provider adapter, which
    knows which failures are permanent.
    """

    def __init__(
        self,
        timeout: float = 30,
        connect_retries: int = 1,
        backoff_factor: float = 0.3,
        pool_maxsize: int = 20,
    ) -> None:
        self.session = requests.Session()
        self.timeout = timeout

        retry = Retry(
            total=connect_retries,
            connect=connect_retries,
            read=0,
            status=0,
            backoff_factor=backoff_factor,
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_maxsize=pool_maxsize)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        return self.session.get(
            url,
            headers=headers,
            params=params,
            timeout=self.timeout if timeout is None else timeout,
        )

    def close(self) -> None:
        self.session.close()
