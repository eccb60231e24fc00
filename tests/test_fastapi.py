# tests/test_fastapi.py
from typing import Optional

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from conftest import make_token, public_pem
from pkg_admin.adapters.jwt.signature_verifier import (
    EmulatorSignatureVerifier,
    PublicKeySignatureVerifier,
)
from pkg_admin.domain.constants import JwtErrorCode
from pkg_admin.domain.entities import DecodedToken
from pkg_admin.domain.exceptions import JwtError
from pkg_admin.integrations.common.verifier_factory import create_signature_verifier
from pkg_admin.integrations.fastapi import (
    FastAPITokenVerification,
    TokenExtractor,
    create_fastapi_verification,
)

CERT_URL = "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"


class StaticKeyFetcher:
    def __init__(self, keys=None, error=None):
        self.keys = keys or {}
        self.error = error

    async def fetch_public_keys(self):
        if self.error is not None:
            raise self.error
        return self.keys


def build_client(key_fetcher, extractor: Optional[TokenExtractor] = None) -> TestClient:
    verifier = PublicKeySignatureVerifier(CERT_URL, key_fetcher=key_fetcher)
    verification = FastAPITokenVerification(verifier=verifier, extractor=extractor or TokenExtractor())
    app = FastAPI()

    @app.get("/me")
    async def me(token: DecodedToken = Depends(verification.verify_request)):
        return {"sub": token.payload["sub"], "kid": token.kid}

    @app.get("/maybe")
    async def maybe(token: Optional[DecodedToken] = Depends(verification.get_optional_token)):
        return {"sub": token.payload["sub"] if token else None}

    return TestClient(app)


@pytest.fixture
def client(rsa_key) -> TestClient:
    return build_client(StaticKeyFetcher({"key-1": public_pem(rsa_key)}))


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---- verify_request ---- #


def test_valid_bearer_token(client, rsa_key):
    resp = client.get("/me", headers=bearer(make_token(rsa_key)))

    assert resp.status_code == 200
    assert resp.json() == {"sub": "user-1", "kid": "key-1"}


def test_token_from_cookie(client, rsa_key):
    resp = client.get("/me", headers={"Cookie": f"access_token={make_token(rsa_key)}"})

    assert resp.status_code == 200


def test_missing_token_is_401(client):
    resp = client.get("/me")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


def test_bearer_scheme_is_case_insensitive(client, rsa_key):
    resp = client.get("/me", headers={"Authorization": f"bearer {make_token(rsa_key)}"})

    assert resp.status_code == 200


def test_cookie_fallback_can_be_disabled(rsa_key):
    client = build_client(
        StaticKeyFetcher({"key-1": public_pem(rsa_key)}),
        extractor=TokenExtractor(cookie_name=None),
    )

    resp = client.get("/me", headers={"Cookie": f"access_token={make_token(rsa_key)}"})

    assert resp.status_code == 401


def test_expired_token_is_401(client, rsa_key):
    resp = client.get("/me", headers=bearer(make_token(rsa_key, expires_in=-60)))

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_forged_token_is_401(client, other_rsa_key):
    resp = client.get("/me", headers=bearer(make_token(other_rsa_key)))

    assert resp.status_code == 401
    assert resp.json()["detail"] == "The provided token has invalid signature."


def test_key_fetch_failure_is_503(rsa_key):
    client = build_client(
        StaticKeyFetcher(error=JwtError(JwtErrorCode.INTERNAL_ERROR, "Error fetching public keys")),
    )

    resp = client.get("/me", headers=bearer(make_token(rsa_key)))

    assert resp.status_code == 503


# ---- get_optional_token ---- #


def test_optional_token(client, rsa_key, other_rsa_key):
    assert client.get("/maybe").json() == {"sub": None}
    assert client.get("/maybe", headers=bearer(make_token(other_rsa_key))).json() == {"sub": None}
    assert client.get("/maybe", headers=bearer(make_token(rsa_key))).json() == {"sub": "user-1"}


# ---- factories ---- #


def test_factory_builds_production_verifier(monkeypatch):
    monkeypatch.delenv("FIREBASE_AUTH_EMULATOR_HOST", raising=False)

    verifier = create_signature_verifier(client_cert_url=CERT_URL)

    assert isinstance(verifier, PublicKeySignatureVerifier)
    assert verifier.algorithm == "RS256"


def test_factory_builds_emulator_verifier(monkeypatch):
    monkeypatch.setenv("FIREBASE_AUTH_EMULATOR_HOST", "localhost:9099")

    assert isinstance(create_signature_verifier(client_cert_url=CERT_URL), EmulatorSignatureVerifier)

    # arguments are still validated under the emulator
    with pytest.raises(ValueError):
        create_signature_verifier(client_cert_url="not a url")


def test_create_fastapi_verification(monkeypatch):
    monkeypatch.delenv("FIREBASE_AUTH_EMULATOR_HOST", raising=False)

    verification = create_fastapi_verification(client_cert_url=CERT_URL, algorithm="RS512")

    assert isinstance(verification, FastAPITokenVerification)
    assert verification.verifier.algorithm == "RS512"
