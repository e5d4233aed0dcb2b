import datetime
import socket
import ssl
import threading

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from stackup_core.errors import CertificateReadError
from stackup_core.issuer import IssuerSignatures, classify_issuer, fetch_issuer, issuer_from_der
from stackup_core.modes import IssuerClass
from stackup_core.verdicts import Verdict


@pytest.mark.parametrize(
    ("issuer", "expected", "verdict"),
    [
        ("CN=Fake LE Intermediate X1", IssuerClass.STAGING, Verdict.ISSUER_MATCH),
        ("CN=Fake LE Intermediate X1", IssuerClass.PRODUCTION, Verdict.ISSUER_MISMATCH),
        ("CN=R3, O=Let's Encrypt", IssuerClass.PRODUCTION, Verdict.ISSUER_MATCH),
        ("CN=R3, O=Let's Encrypt", IssuerClass.STAGING, Verdict.ISSUER_MISMATCH),
        ("CN=(STAGING) Artificial Apricot R3,O=(STAGING) Let's Encrypt,C=US", IssuerClass.STAGING, Verdict.ISSUER_MATCH),
        ("CN=(STAGING) Artificial Apricot R3,O=(STAGING) Let's Encrypt,C=US", IssuerClass.PRODUCTION, Verdict.ISSUER_MISMATCH),
        ("CN=TRAEFIK DEFAULT CERT", IssuerClass.PRODUCTION, Verdict.ISSUER_MISMATCH),
    ],
)
def test_classify_issuer(issuer, expected, verdict) -> None:
    assert classify_issuer(issuer, expected) is verdict


@pytest.mark.parametrize("issuer", ["", "   ", None])
@pytest.mark.parametrize("expected", list(IssuerClass))
def test_empty_issuer_is_unreadable(issuer, expected) -> None:
    assert classify_issuer(issuer, expected) is Verdict.CERT_UNREADABLE


def test_signatures_are_configurable() -> None:
    sigs = IssuerSignatures(staging=("pretend pear",), production=("example ca",))
    assert classify_issuer("CN=Pretend Pear X1", IssuerClass.STAGING, sigs) is Verdict.ISSUER_MATCH
    assert classify_issuer("CN=Fake LE Intermediate X1", IssuerClass.STAGING, sigs) is Verdict.ISSUER_MISMATCH
    assert classify_issuer("O=Example CA", IssuerClass.PRODUCTION, sigs) is Verdict.ISSUER_MATCH


def _self_signed(common_name: str, org: str):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
        ]
    )
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return cert, key


def _self_signed_der(common_name: str, org: str) -> bytes:
    cert, _ = _self_signed(common_name, org)
    return cert.public_bytes(serialization.Encoding.DER)


def test_issuer_from_der_reads_issuer_dn() -> None:
    issuer = issuer_from_der(_self_signed_der("R3", "Let's Encrypt"))
    assert "CN=R3" in issuer
    assert classify_issuer(issuer, IssuerClass.PRODUCTION) is Verdict.ISSUER_MATCH


def test_issuer_from_der_rejects_garbage() -> None:
    with pytest.raises(CertificateReadError):
        issuer_from_der(b"not a certificate")


@pytest.fixture
def tls_server(tmp_path):
    cert, key = _self_signed("Fake LE Intermediate X1", "Fake LE")
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(cert_path, key_path)
    server_names: list[str | None] = []
    ctx.sni_callback = lambda _sock, name, _ctx: server_names.append(name)

    listener = socket.create_server(("127.0.0.1", 0))

    def serve() -> None:
        conn, _ = listener.accept()
        with conn:
            try:
                with ctx.wrap_socket(conn, server_side=True) as tls:
                    tls.recv(1)
            except OSError:
                pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield listener.getsockname()[1], server_names
    thread.join(timeout=5)
    listener.close()


def test_fetch_issuer_reads_untrusted_leaf_with_sni(tls_server) -> None:
    port, server_names = tls_server

    issuer = fetch_issuer("localhost", port=port, timeout=5)

    assert "CN=Fake LE Intermediate X1" in issuer
    assert classify_issuer(issuer, IssuerClass.STAGING) is Verdict.ISSUER_MATCH
    assert server_names == ["localhost"]


def test_fetch_issuer_unencodable_host_is_unreadable() -> None:
    with pytest.raises(CertificateReadError):
        fetch_issuer("a" * 64 + ".example.test", timeout=1)
