# tests/test_cli.py
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_token, public_pem
from pkg_admin import cli
from pkg_admin.adapters.google import credentials as google_credentials
from pkg_admin.adapters.jwt.signature_verifier import PublicKeySignatureVerifier
from pkg_admin.domain.exceptions import JwtError

CERT_URL = "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"


class StaticKeyFetcher:
    def __init__(self, keys):
        self.keys = keys

    async def fetch_public_keys(self):
        return self.keys


@pytest.fixture
def offline_verifier(monkeypatch, rsa_key):
    def factory(*, client_cert_url, algorithm):
        return PublicKeySignatureVerifier(
            client_cert_url,
            algorithm,
            key_fetcher=StaticKeyFetcher({"key-1": public_pem(rsa_key)}),
        )

    monkeypatch.setattr(cli, "create_signature_verifier", factory)


def test_verify_prints_decoded_token(offline_verifier, rsa_key, capsys):
    cli.main(["verify", make_token(rsa_key, claims={"role": "admin"}), "--cert-url", CERT_URL])

    out = json.loads(capsys.readouterr().out)
    assert out["ok"] is True
    assert out["header"]["kid"] == "key-1"
    assert out["payload"]["role"] == "admin"


def test_verify_failure_prints_error_and_raises(offline_verifier, other_rsa_key, capsys):
    with pytest.raises(JwtError):
        cli.main(["verify", make_token(other_rsa_key), "--cert-url", CERT_URL])

    out = json.loads(capsys.readouterr().out)
    assert out == {
        "ok": False,
        "error": "The provided token has invalid signature.",
        "code": "invalid-token",
    }


def test_token_command_uses_service_account(tmp_path, monkeypatch, service_account_info, capsys):
    def _refresh(creds):
        creds.token = "cli-token"
        creds.expiry = (datetime.now(timezone.utc) + timedelta(hours=1)).replace(tzinfo=None)

    monkeypatch.setattr(google_credentials, "_refresh", _refresh)
    monkeypatch.delenv("FIREBASE_CONFIG", raising=False)
    path = tmp_path / "service-account.json"
    path.write_text(json.dumps(service_account_info))

    cli.main(["token", "--credential", str(path)])

    out = json.loads(capsys.readouterr().out)
    assert out["ok"] is True
    assert out["access_token"] == "cli-token"
    assert isinstance(out["expiration_time_millis"], int)


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
