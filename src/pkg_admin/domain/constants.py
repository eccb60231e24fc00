from enum import Enum


DEFAULT_APP_NAME = "[DEFAULT]"

# Proactive refresh starts this long before a token expires.
TOKEN_REFRESH_THRESHOLD_MILLIS = 5 * 60 * 1000
TOKEN_REFRESH_RETRY_DELAY_MILLIS = 60 * 1000
MAX_PROACTIVE_REFRESH_ATTEMPTS = 5
ONE_MINUTE_MILLIS = 60 * 1000

ALGORITHM_RS256 = "RS256"
NO_MATCHING_KID_ERROR_MESSAGE = "no-matching-kid-error"


class AppErrorCode(Enum):
    APP_DELETED = "app-deleted"
    DUPLICATE_APP = "duplicate-app"
    INVALID_ARGUMENT = "invalid-argument"
    INTERNAL_ERROR = "internal-error"
    INVALID_APP_NAME = "invalid-app-name"
    INVALID_APP_OPTIONS = "invalid-app-options"
    INVALID_CREDENTIAL = "invalid-credential"
    CREDENTIAL_FETCH_FAILED = "credential-fetch-failed"
    NETWORK_ERROR = "network-error"
    NETWORK_TIMEOUT = "network-timeout"
    NO_APP = "no-app"
    UNABLE_TO_PARSE_RESPONSE = "unable-to-parse-response"


class JwtErrorCode(Enum):
    INVALID_ARGUMENT = "invalid-argument"
    INVALID_CREDENTIAL = "invalid-credential"
    TOKEN_EXPIRED = "token-expired"
    INVALID_TOKEN = "invalid-token"
    NO_MATCHING_KID = "no-matching-kid-error"
    INTERNAL_ERROR = "internal-error"


class RefreshState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    REFRESHING = "refreshing"
    DELETED = "deleted"


class AppEvent(Enum):
    CREATE = "create"
    DELETE = "delete"
