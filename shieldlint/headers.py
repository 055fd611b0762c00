"""Live HTTP response header probe."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "shieldlint-header-probe"


def fetch_headers(
    url: str,
    timeout: float = 5.0,
    client: Optional[httpx.Client] = None,
    verify: bool = True,
) -> Optional[dict[str, str]]:
    """Response headers of ``GET url`` with lower-cased names.

    Returns None when the application cannot be reached; the probe is a
    best-effort supplement to static checks and never fails a scan.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout, follow_redirects=True, verify=verify)
    try:
        response = client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as e:
        logger.warning(f"Header probe of {url} failed: {e}")
        return None
    finally:
        if owns_client:
            client.close()
    return {name.lower(): value for name, value in response.headers.items()}
