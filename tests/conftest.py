# tests/conftest.py
from __future__ import annotations

import datetime as dt
import time
from typing import Any, Dict, List, Optional

import jwt
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, millis: float) -> None:
        self.now += millis


class FakeScheduler:
    """Records the single pending refresh instead of arming a real timer."""

    def __init__(self) -> None:
        self.delay: Optional[float] = None
        self.callback = None
        self.history: List[float] = []
        self.shut_down = False

    @property
    def pending(self) -> bool:
        return self.callback is not None

    def schedule(self, delay_millis, callback) -> None:
        self.delay = delay_millis
        self.callback = callback
        self.history.append(delay_millis)

    def cancel(self) -> None:
        self.delay = None
        self.callback = None

    def shutdown(self) -> None:
        self.cancel()
        self.shut_down = True

    async def fire(self) -> None:
        callback = self.callback
        assert callback is not None, "nothing scheduled"
        self.delay = None
        self.callback = None
        await callback()


class FakeCredential:
    """Returns queued results (dicts or exceptions) in order."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls = 0

    def get_access_token(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class AsyncFakeCredential(FakeCredential):
    async def get_access_token(self):
        return FakeCredential.get_access_token(self)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


# ---- Keys and tokens ---- #


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def private_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def public_pem(key: rsa.RSAPrivateKey) -> str:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def certificate_pem(key: rsa.RSAPrivateKey) -> str:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken.test")])
    now = dt.datetime.now(dt.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(days=1))
        .not_valid_after(now + dt.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def make_token(
    key: rsa.RSAPrivateKey,
    *,
    kid: Optional[str] = "key-1",
    expires_in: int = 3600,
    claims: Optional[Dict[str, Any]] = None,
    algorithm: str = "RS256",
) -> str:
    now = int(time.time())
    payload = {"sub": "user-1", "iat": now, "exp": now + expires_in, **(claims or {})}
    headers = {"kid": kid} if kid is not None else None
    return jwt.encode(payload, private_pem(key), algorithm=algorithm, headers=headers)


@pytest.fixture(scope="session")
def service_account_info(rsa_key) -> Dict[str, str]:
    return {
        "type": "service_account",
        "project_id": "project-id",
        "private_key_id": "key-1",
        "private_key": private_pem(rsa_key),
        "client_email": "admin@project-id.iam.gserviceaccount.com",
        "client_id": "1234",
    }
