from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

import httpx

log = logging.getLogger(__name__)

ACCEPTED_STATUS_CODES = frozenset({200, 301, 302, 401, 403})
DEFAULT_ATTEMPTS = 60
DEFAULT_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0


@dataclass(frozen=True)
class PollResult:
    ok: bool
    attempts: int
    status_code: int | None = None
    error: str | None = None


def make_client(timeout: float = DEFAULT_REQUEST_TIMEOUT) -> httpx.Client:
    # Staging roots are not trusted, so certificate checks stay off while polling.
    return httpx.Client(
        verify=False,
        timeout=timeout,
        follow_redirects=False,
        headers={"User-Agent": "stackup-readiness/0.1.0"},
    )


def poll_until_ready(
    url: str,
    *,
    client: httpx.Client,
    attempts: int = DEFAULT_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    deadline: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    on_attempt: Callable[[int, int | None, str | None], None] | None = None,
) -> PollResult:
    """GET *url* until it answers with an accepted status code.

    Transport errors count as "not responding yet". At most *attempts*
    requests are made; there is no sleep after the last one. *deadline* is an
    absolute ``clock()`` value after which no further attempt is started.
    """
    last_status: int | None = None
    last_error: str | None = None
    made = 0
    for attempt in range(1, max(1, attempts) + 1):
        if deadline is not None and attempt > 1 and clock() >= deadline:
            break
        made = attempt
        try:
            resp = client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
            # An unencodable host is reported like an unreachable one.
            last_status = None
            last_error = f"{type(exc).__name__}: {exc}"
        else:
            last_status = resp.status_code
            last_error = None
        if on_attempt:
            on_attempt(attempt, last_status, last_error)
        if last_status in ACCEPTED_STATUS_CODES:
            return PollResult(ok=True, attempts=attempt, status_code=last_status)
        log.debug("poll %s attempt %d/%d: status=%s error=%s", url, attempt, attempts, last_status, last_error)
        if attempt < attempts:
            sleep(interval)
    return PollResult(ok=False, attempts=made, status_code=last_status, error=last_error)
