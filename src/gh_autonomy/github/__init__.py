"""GitHub API access: credentials, transport and repository helpers."""

from .auth import (
    CachedInstallationToken,
    ConfigurationError,
    CredentialProvider,
    ExchangeError,
    GitHubAuthError,
    ReadToken,
)
from .transport import (
    AuthMode,
    ErrorInfo,
    GitHubHttpTransport,
    GitHubRequest,
    TransportResult,
)

__all__ = [
    "AuthMode",
    "CachedInstallationToken",
    "ConfigurationError",
    "CredentialProvider",
    "ErrorInfo",
    "ExchangeError",
    "GitHubAuthError",
    "GitHubHttpTransport",
    "GitHubRequest",
    "ReadToken",
    "TransportResult",
]
