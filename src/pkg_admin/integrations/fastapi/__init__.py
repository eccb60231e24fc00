from __future__ import annotations

from .deps import FastAPITokenVerification
from .security import DEFAULT_COOKIE_NAME, TokenExtractor, bearer_scheme
from ..common.verifier_factory import create_signature_verifier
from ...domain.constants import ALGORITHM_RS256


def create_fastapi_verification(
    *,
    client_cert_url: str,
    algorithm: str = ALGORITHM_RS256,
    cookie_name: str | None = DEFAULT_COOKIE_NAME,
) -> FastAPITokenVerification:
    """
    High-level helper for FastAPI apps:

    - Builds a SignatureVerifier for the certificate endpoint (emulator-aware)
    - Wraps it in FastAPITokenVerification, exposing dependencies like:

        verification.verify_request
        verification.get_optional_token
    """
    verifier = create_signature_verifier(
        client_cert_url=client_cert_url,
        algorithm=algorithm,
    )
    return FastAPITokenVerification(
        verifier=verifier,
        extractor=TokenExtractor(cookie_name),
    )


__all__ = [
    "FastAPITokenVerification",
    "TokenExtractor",
    "bearer_scheme",
    "create_fastapi_verification",
]


"""

from fastapi import Depends, FastAPI
from pkg_admin import DecodedToken
from pkg_admin.integrations.fastapi import create_fastapi_verification

verification = create_fastapi_verification(
    client_cert_url="https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com",
)

app = FastAPI()


@app.get("/me")
async def me(token: DecodedToken = Depends(verification.verify_request)):
    return {"uid": token.payload.get("sub")}

"""
