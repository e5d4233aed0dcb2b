import threading

import httpx

from stackup_core.errors import CertificateReadError
from stackup_core.layout import HostnameRecord, build_hostnames
from stackup_core.modes import IssuerClass
from stackup_core.readiness import HostState, ReadinessVerifier, VerifyOptions, run_readiness_pass
from stackup_core.verdicts import Verdict

LE_PROD = "CN=R3,O=Let's Encrypt,C=US"
LE_STAGING = "CN=Fake LE Intermediate X1"


def _factory(handler):
    def make(_timeout: float) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    return make


def _ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200)


def _issuers(mapping: dict[str, object]):
    def read(host: str, *, port: int, timeout: float) -> str:
        value = mapping[host]
        if isinstance(value, Exception):
            raise value
        return value

    return read


def _options(**kwargs) -> VerifyOptions:
    kwargs.setdefault("attempts", 3)
    kwargs.setdefault("interval", 0)
    return VerifyOptions(**kwargs)


def test_all_hosts_match() -> None:
    records = build_hostnames("example.test")
    report = run_readiness_pass(
        records,
        IssuerClass.PRODUCTION,
        _options(),
        client_factory=_factory(_ok_handler),
        issuer_reader=_issuers({r.fqdn: LE_PROD for r in records}),
        sleep=lambda _: None,
    )

    assert report.ok
    assert report.failed == []
    assert all(r.verdict is Verdict.ISSUER_MATCH for r in report.results)


def test_timeout_on_one_host_fails_pass_but_checks_all() -> None:
    records = build_hostnames("example.test")[:3]
    dead = records[2].fqdn

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == dead:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200)

    report = run_readiness_pass(
        records,
        IssuerClass.STAGING,
        _options(),
        client_factory=_factory(handler),
        issuer_reader=_issuers({r.fqdn: LE_STAGING for r in records}),
        sleep=lambda _: None,
    )

    assert [r.verdict for r in report.results] == [
        Verdict.ISSUER_MATCH,
        Verdict.ISSUER_MATCH,
        Verdict.HTTP_TIMEOUT,
    ]
    assert not report.ok
    assert [r.record.fqdn for r in report.failed] == [dead]
    assert report.results[2].attempts == 3


def test_unreadable_and_mismatch_are_per_host() -> None:
    records = build_hostnames("example.test")[:3]
    issuers = {
        records[0].fqdn: LE_STAGING,
        records[1].fqdn: CertificateReadError("handshake failed"),
        records[2].fqdn: LE_PROD,
    }

    report = run_readiness_pass(
        records,
        IssuerClass.STAGING,
        _options(),
        client_factory=_factory(_ok_handler),
        issuer_reader=_issuers(issuers),
        sleep=lambda _: None,
    )

    assert report.verdicts() == {
        records[0].fqdn: Verdict.ISSUER_MATCH,
        records[1].fqdn: Verdict.CERT_UNREADABLE,
        records[2].fqdn: Verdict.ISSUER_MISMATCH,
    }
    assert "handshake failed" in report.results[1].detail


def test_state_machine_history() -> None:
    record = build_hostnames("example.test")[0]
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503 if calls["count"] < 3 else 302)

    verifier = ReadinessVerifier(
        _options(attempts=5),
        client_factory=_factory(handler),
        issuer_reader=_issuers({record.fqdn: LE_STAGING}),
        sleep=lambda _: None,
    )
    result = verifier.verify_hostname(record, IssuerClass.STAGING)

    assert result.attempts == 3
    assert result.status_code == 302
    assert result.history == [
        HostState.PENDING,
        HostState.POLLING,
        HostState.RESPONDING,
        HostState.VERIFYING_ISSUER,
        HostState.DONE,
    ]


def test_timeout_skips_issuer_check() -> None:
    record = build_hostnames("example.test")[0]

    def reader(*_args, **_kwargs) -> str:
        raise AssertionError("issuer must not be read for a host that never answered")

    verifier = ReadinessVerifier(
        _options(),
        client_factory=_factory(lambda _: httpx.Response(502)),
        issuer_reader=reader,
        sleep=lambda _: None,
    )
    result = verifier.verify_hostname(record, IssuerClass.PRODUCTION)

    assert result.verdict is Verdict.HTTP_TIMEOUT
    assert HostState.VERIFYING_ISSUER not in result.history


def test_workers_check_hosts_concurrently_and_keep_order() -> None:
    records = build_hostnames("example.test")
    threads: set[str] = set()
    lock = threading.Lock()

    def reader(host: str, *, port: int, timeout: float) -> str:
        with lock:
            threads.add(threading.current_thread().name)
        return LE_PROD

    report = run_readiness_pass(
        records,
        IssuerClass.PRODUCTION,
        _options(workers=3),
        client_factory=_factory(_ok_handler),
        issuer_reader=reader,
        sleep=lambda _: None,
    )

    assert report.ok
    assert [r.record for r in report.results] == records
    assert all(name.startswith("readiness") for name in threads)


def test_transition_hook_sees_terminal_state() -> None:
    record = build_hostnames("example.test")[0]
    seen: list[HostState] = []

    run_readiness_pass(
        [record],
        IssuerClass.STAGING,
        _options(),
        client_factory=_factory(_ok_handler),
        issuer_reader=_issuers({record.fqdn: LE_STAGING}),
        sleep=lambda _: None,
        on_transition=lambda r: seen.append(r.state),
    )

    assert seen[0] is HostState.POLLING
    assert seen[-1] is HostState.DONE


def test_empty_host_list_is_not_ok() -> None:
    report = run_readiness_pass([], IssuerClass.STAGING, _options())
    assert not report.ok


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def test_deadline_times_out_remaining_hosts_but_reports_all() -> None:
    records = build_hostnames("example.test")[1:4]
    ready, slow, late = (r.fqdn for r in records)
    clock = _FakeClock()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200 if request.url.host == ready else 503)

    verifier = ReadinessVerifier(
        _options(attempts=10, interval=5, deadline=12),
        client_factory=_factory(handler),
        issuer_reader=_issuers({ready: LE_STAGING}),
        sleep=clock.sleep,
        clock=clock,
    )
    report = verifier.run(records, IssuerClass.STAGING)

    assert [r.record.fqdn for r in report.results] == [ready, slow, late]
    assert report.verdicts() == {
        ready: Verdict.ISSUER_MATCH,
        slow: Verdict.HTTP_TIMEOUT,
        late: Verdict.HTTP_TIMEOUT,
    }
    assert report.results[1].attempts == 3
    assert report.results[2].attempts == 1
    assert not report.ok


def test_unencodable_hostname_does_not_abort_pass() -> None:
    bad = HostnameRecord(name="n8n", fqdn="a" * 64 + ".example.test", port=5678, service="n8n")

    report = run_readiness_pass([bad], IssuerClass.STAGING, _options(attempts=1))

    assert report.verdicts() == {bad.fqdn: Verdict.HTTP_TIMEOUT}
    assert report.results[0].history[-1] is HostState.DONE
