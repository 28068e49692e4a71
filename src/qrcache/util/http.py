from __future__ import annotations

from typing import Iterable, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


DEFAULT_TIMEOUT = 30.0

Timeout = Union[float, Tuple[float, float]]


class TimeoutHTTPAdapter(HTTPAdapter):
    def __init__(self, *args, timeout: Timeout = DEFAULT_TIMEOUT, **kwargs) -> None:
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):  # type: ignore[override]
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def create_session(
    user_agent: str,
    retries: int = 0,
    backoff: float = 0.3,
    status_forcelist: Iterable[int] = (500, 502, 503, 504),
    timeout: Timeout = DEFAULT_TIMEOUT,
    pool_size: int = 10,
) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent, "Accept": "image/*"})
    retry = Retry(
        total=retries,
        read=retries,
        connect=retries,
        backoff_factor=backoff,
        status_forcelist=status_forcelist,
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    adapter = TimeoutHTTPAdapter(
        max_retries=retry,
        timeout=timeout,
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
