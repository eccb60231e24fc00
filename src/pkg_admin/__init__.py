"""
pkg_admin

Server-side admin SDK core: per-app OAuth2 access-token lifecycle
(caching, proactive refresh, listeners) and verification of signed JWTs
against published public keys, with FastAPI integration helpers.
"""

__version__ = "0.1.0"

from .domain.entities import AccessToken, DecodedToken, PublicKeyCache
from .domain.constants import (
    DEFAULT_APP_NAME,
    AppErrorCode,
    JwtErrorCode,
    RefreshState,
)
from .domain.exceptions import AdminError, AppError, JwtError
from .domain.ports import Credential, KeyFetcher, SignatureVerifier

from .config import AppOptions

from .application.token_manager import AccessTokenManager
from .application.app import App
from .application.registry import (
    AppRegistry,
    default_registry,
    delete_app,
    get_app,
    get_apps,
    initialize_app,
)

from .adapters.jwt.key_fetcher import UrlKeyFetcher
from .adapters.jwt.signature_verifier import (
    EmulatorSignatureVerifier,
    PublicKeySignatureVerifier,
    decode_jwt,
)
from .integrations.common.verifier_factory import create_signature_verifier

__all__ = [
    "__version__",
    # domain core
    "AccessToken",
    "DecodedToken",
    "PublicKeyCache",
    "DEFAULT_APP_NAME",
    "RefreshState",
    "Credential",
    "KeyFetcher",
    "SignatureVerifier",
    # exceptions
    "AdminError",
    "AppError",
    "JwtError",
    "AppErrorCode",
    "JwtErrorCode",
    # apps
    "AppOptions",
    "App",
    "AppRegistry",
    "AccessTokenManager",
    "default_registry",
    "initialize_app",
    "get_app",
    "get_apps",
    "delete_app",
    # verification
    "UrlKeyFetcher",
    "PublicKeySignatureVerifier",
    "EmulatorSignatureVerifier",
    "decode_jwt",
    "create_signature_verifier",
]
