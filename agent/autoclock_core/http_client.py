"""
HTTP sessions with connection pooling, automatic retry, and a pinned CA bundle.

The attendance API gets a retrying session; the reachability probe gets a
bare one so that a dead endpoint costs one timeout, not four.
"""

import os

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import USER_AGENT

_retry_strategy = Retry(
    total=3,
    backoff_factor=2,                           # Wait 2s, 4s, 8s between retries
    status_forcelist=[502, 503, 504],
    allowed_methods=["HEAD", "GET"],            # Never POST: a clock call must not repeat
)


def _get_ca_bundle():
    """Env override (REQUESTS_CA_BUNDLE / SSL_CERT_FILE) first, then certifi."""
    env_ca = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def create_session(retries=True):
    """Create a requests.Session with pooling, optional retry, and SSL verification."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=3,
        max_retries=_retry_strategy if retries else 0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def reset_session(session):
    """Close and recreate the HTTP session (fixes stale connections)."""
    try:
        session.close()
    except Exception:
        pass
    return create_session()
