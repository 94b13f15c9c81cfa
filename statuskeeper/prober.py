"""
HTTP prober: one bounded health check per target.
"""

import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import requests

from statuskeeper.core import ISSUES, OFFLINE, ONLINE, ProbeResult, ServiceTarget
from statuskeeper.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 7.0


def classify_status(status_code: int, expected_code: int) -> str:
    """
    Map an HTTP response code to a service status.

    The expected code wins over everything else, so a service that is
    configured to answer 503 is online when it does.
    """
    if status_code == expected_code:
        return ONLINE
    if status_code >= 500:
        return OFFLINE
    return ISSUES


class HttpProber:
    """
    Checks targets with a single GET request.

    A probe never raises: timeouts and transport failures are recorded as
    ``offline`` with no response time, since no response was measured.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str | None = None
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    def probe(self, target: ServiceTarget) -> ProbeResult:
        """Check one target and classify the outcome."""
        started = time.perf_counter()
        try:
            response = requests.get(
                target.url,
                headers=self.headers,
                timeout=self.timeout_seconds,
                allow_redirects=True
            )
        except requests.Timeout:
            logger.info("Probe of %s timed out after %ss", target.url, self.timeout_seconds)
            return ProbeResult(status=OFFLINE, response_time=None, error="timeout")
        except Exception as e:
            logger.info("Probe of %s failed: %s", target.url, e)
            return ProbeResult(status=OFFLINE, response_time=None, error=str(e))

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        status = classify_status(response.status_code, target.expected_response_code)
        logger.debug(
            "Probed %s: %s (%s, %sms)",
            target.url,
            status,
            response.status_code,
            elapsed_ms
        )
        return ProbeResult(
            status=status,
            response_time=elapsed_ms,
            status_code=response.status_code
        )

    def probe_all(
        self,
        targets: Sequence[ServiceTarget],
        max_concurrency: int = 16
    ) -> list[ProbeResult]:
        """
        Probe every target concurrently and wait for all of them.

        Returns:
            One result per target, in target order
        """
        if not targets:
            return []

        workers = max(1, min(max_concurrency, len(targets)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe") as pool:
            return list(pool.map(self.probe, targets))
