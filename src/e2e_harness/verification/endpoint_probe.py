"""Backend endpoint probes run alongside the UI steps.

Probes verify backend functions the UI depends on (e.g. a migrations
endpoint) directly over HTTP. Their results go to the report's
``endpoints`` list; they never change step outcomes.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import httpx

from ..models.harness_models import EndpointCheck, EndpointResult

logger = logging.getLogger(__name__)


class EndpointProbe:
    """
    Run EndpointChecks with an async httpx client.

    PATTERN: HTTP-based checks with async httpx
    GOTCHA: URLs and header values may reference environment variables (``${ANON_KEY}``)
    so tokens stay out of scenario files
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the probe.

        Args:
            base_url: Base for relative check URLs
            client: Client to use (one is created per run() otherwise)
        """
        self.base_url = base_url
        self.client = client

    def resolve_url(self, url: str) -> str:
        if urlparse(url).scheme or not self.base_url:
            return url
        return urljoin(self.base_url, url)

    async def run(self, checks: Sequence[EndpointCheck]) -> List[EndpointResult]:
        """
        Run checks in order.

        Args:
            checks: Checks to run

        Returns:
            One EndpointResult per check
        """
        if not checks:
            return []

        if self.client is not None:
            return [await self.check(self.client, c) for c in checks]

        async with httpx.AsyncClient() as client:
            return [await self.check(client, c) for c in checks]

    async def check(self, client: httpx.AsyncClient, check: EndpointCheck) -> EndpointResult:
        """
        Run a single check.

        Transport errors and timeouts are recorded on the result, never raised.
        """
        url = self.resolve_url(os.path.expandvars(check.url))
        method = check.method.upper()
        headers = {k: os.path.expandvars(v) for k, v in check.headers.items()}

        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=check.json_body,
                timeout=check.timeout_ms / 1000,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Endpoint '{check.name}' timed out: {e}")
            return self._result(check, url, error=f"Timed out after {check.timeout_ms}ms")
        except httpx.HTTPError as e:
            logger.error(f"Endpoint '{check.name}' request failed: {e}")
            return self._result(check, url, error=f"Request failed: {e}")

        error = None
        if response.status_code != check.expected_status:
            error = f"Expected HTTP {check.expected_status}, got {response.status_code}"
        elif check.contains is not None and check.contains not in response.text:
            error = f"Response body does not contain {check.contains!r}"

        if error:
            logger.warning(f"Endpoint '{check.name}' failed: {error}")
        else:
            logger.info(f"Endpoint '{check.name}' OK ({response.status_code})")
        return self._result(check, url, status=response.status_code, error=error)

    @staticmethod
    def _result(
        check: EndpointCheck,
        url: str,
        status: Optional[int] = None,
        error: Optional[str] = None,
    ) -> EndpointResult:
        return EndpointResult(
            name=check.name,
            url=url,
            method=check.method.upper(),
            passed=error is None,
            status=status,
            error=error,
            checked_at=datetime.now(),
        )
