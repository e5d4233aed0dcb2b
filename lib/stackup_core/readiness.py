from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

import httpx

from .errors import CertificateReadError
from .issuer import DEFAULT_TLS_PORT, IssuerSignatures, classify_issuer, fetch_issuer
from .layout import HostnameRecord
from .modes import IssuerClass
from .polling import (
    DEFAULT_ATTEMPTS,
    DEFAULT_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    make_client,
    poll_until_ready,
)
from .verdicts import Verdict

log = logging.getLogger(__name__)


class HostState(str, Enum):
    PENDING = "pending"
    POLLING = "polling"
    RESPONDING = "responding"
    VERIFYING_ISSUER = "verifying_issuer"
    DONE = "done"


@dataclass
class VerifyOptions:
    attempts: int = DEFAULT_ATTEMPTS
    interval: float = DEFAULT_INTERVAL
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    tls_port: int = DEFAULT_TLS_PORT
    workers: int = 1
    deadline: float | None = None
    signatures: IssuerSignatures = field(default_factory=IssuerSignatures)


@dataclass
class HostnameResult:
    record: HostnameRecord
    state: HostState = HostState.PENDING
    verdict: Verdict = Verdict.PENDING
    attempts: int = 0
    status_code: int | None = None
    issuer: str | None = None
    detail: str = ""
    history: list[HostState] = field(default_factory=lambda: [HostState.PENDING])

    def move(self, state: HostState) -> None:
        self.state = state
        self.history.append(state)

    def finish(self, verdict: Verdict, detail: str = "") -> None:
        self.verdict = verdict
        if detail:
            self.detail = detail
        self.move(HostState.DONE)

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.ISSUER_MATCH


@dataclass
class ReadinessReport:
    expected: IssuerClass
    results: list[HostnameResult]

    @property
    def ok(self) -> bool:
        return bool(self.results) and all(r.ok for r in self.results)

    @property
    def failed(self) -> list[HostnameResult]:
        return [r for r in self.results if not r.ok]

    def verdicts(self) -> dict[str, Verdict]:
        return {r.record.fqdn: r.verdict for r in self.results}


ClientFactory = Callable[[float], httpx.Client]
IssuerReader = Callable[..., str]
TransitionHook = Callable[[HostnameResult], None]


class ReadinessVerifier:
    """Poll each hostname over HTTPS, then check who issued its certificate.

    Every hostname runs its own state machine; one hostname failing never
    stops the others. With ``workers > 1`` hostnames are checked on a thread
    pool and joined before the report is built.
    """

    def __init__(
        self,
        options: VerifyOptions | None = None,
        *,
        client_factory: ClientFactory = make_client,
        issuer_reader: IssuerReader = fetch_issuer,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_transition: TransitionHook | None = None,
    ) -> None:
        self.options = options or VerifyOptions()
        self._client_factory = client_factory
        self._issuer_reader = issuer_reader
        self._sleep = sleep
        self._clock = clock
        self._on_transition = on_transition

    def _emit(self, result: HostnameResult) -> None:
        if self._on_transition:
            self._on_transition(result)

    def verify_hostname(
        self,
        record: HostnameRecord,
        expected: IssuerClass,
        *,
        deadline: float | None = None,
    ) -> HostnameResult:
        opts = self.options
        result = HostnameResult(record=record)
        result.move(HostState.POLLING)
        self._emit(result)

        with self._client_factory(opts.timeout) as client:
            poll = poll_until_ready(
                record.url,
                client=client,
                attempts=opts.attempts,
                interval=opts.interval,
                deadline=deadline,
                sleep=self._sleep,
                clock=self._clock,
            )
        result.attempts = poll.attempts
        result.status_code = poll.status_code
        if not poll.ok:
            detail = poll.error or (f"last status {poll.status_code}" if poll.status_code else "no response")
            result.finish(Verdict.HTTP_TIMEOUT, f"{detail} after {poll.attempts} attempt(s)")
            self._emit(result)
            return result

        result.verdict = Verdict.HTTP_OK
        result.move(HostState.RESPONDING)
        self._emit(result)

        result.move(HostState.VERIFYING_ISSUER)
        try:
            issuer = self._issuer_reader(record.fqdn, port=opts.tls_port, timeout=opts.timeout)
        except CertificateReadError as exc:
            result.finish(Verdict.CERT_UNREADABLE, str(exc))
            self._emit(result)
            return result

        result.issuer = issuer
        verdict = classify_issuer(issuer, expected, opts.signatures)
        if verdict is Verdict.CERT_UNREADABLE:
            result.finish(verdict, "empty issuer")
        elif verdict is Verdict.ISSUER_MISMATCH:
            result.finish(verdict, f"expected a {expected.value} certificate")
        else:
            result.finish(verdict)
        self._emit(result)
        return result

    def run(self, records: Iterable[HostnameRecord], expected: IssuerClass) -> ReadinessReport:
        records = list(records)
        deadline = None
        if self.options.deadline is not None:
            deadline = self._clock() + max(0.0, self.options.deadline)

        workers = max(1, min(self.options.workers, len(records) or 1))
        if workers == 1:
            results = [self.verify_hostname(r, expected, deadline=deadline) for r in records]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="readiness") as pool:
                futures = [pool.submit(self.verify_hostname, r, expected, deadline=deadline) for r in records]
                results = [f.result() for f in futures]

        report = ReadinessReport(expected=expected, results=results)
        for r in report.results:
            log.info("%s: %s %s", r.record.fqdn, r.verdict.value, r.detail)
        return report


def run_readiness_pass(
    records: Iterable[HostnameRecord],
    expected: IssuerClass,
    options: VerifyOptions | None = None,
    **kwargs,
) -> ReadinessReport:
    return ReadinessVerifier(options, **kwargs).run(records, expected)
