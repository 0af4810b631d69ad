# lead_intake/services/http.py
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

CONNECT_TIMEOUT = 5.0


def make_session(total_retries: int = 2, backoff_factor: float = 0.5, pool_maxsize: int = 10) -> requests.Session:
    """Pooled session retrying POSTs on throttling and 5xx."""
    retry = Retry(
        total=total_retries,
        connect=total_retries,
        read=total_retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("POST",),
        raise_on_status=False,
    )
    s = requests.Session()
    adapter = HTTPAdapter(max_retries=retry, pool_maxsize=pool_maxsize)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


def timeouts(read_timeout: Optional[float]) -> tuple:
    return (CONNECT_TIMEOUT, read_timeout or 30.0)
