from __future__ import annotations

import logging
from typing import Optional

from ...adapters.http.client import HttpClient
from ...adapters.jwt.signature_verifier import (
    EmulatorSignatureVerifier,
    PublicKeySignatureVerifier,
)
from ...config.env import auth_emulator_host
from ...domain.constants import ALGORITHM_RS256
from ...domain.ports import SignatureVerifier

logger = logging.getLogger(__name__)


def create_signature_verifier(
        *,
        client_cert_url: str,
        algorithm: str = ALGORITHM_RS256,
        http_client: Optional[HttpClient] = None,
) -> SignatureVerifier:
    """
    High-level factory: certificate endpoint -> SignatureVerifier.

    - FIREBASE_AUTH_EMULATOR_HOST set -> EmulatorSignatureVerifier
      (no key fetch, no signature check)
    - otherwise -> PublicKeySignatureVerifier over ``client_cert_url``

    Argument validation happens in both cases so that a bad URL or
    algorithm is caught before deploying without the emulator.
    """
    verifier = PublicKeySignatureVerifier(
        client_cert_url,
        algorithm,
        http_client=http_client,
    )

    emulator_host = auth_emulator_host()
    if emulator_host is not None:
        logger.warning(
            "Auth emulator at %s detected; token signatures will NOT be checked",
            emulator_host,
        )
        return EmulatorSignatureVerifier()
    return verifier
