"""GitHub App JWT generation (RS256)."""

import base64
import json
import time
from typing import Any, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..config import Config


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _load_private_key(private_key: str) -> rsa.RSAPrivateKey:
    key = serialization.load_pem_private_key(private_key.encode(), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("GitHub App private key must be an RSA key")
    return key


def generate_app_jwt(
    app_id: str,
    private_key: str,
    now: Optional[float] = None,
    backdate_seconds: int = Config.JWT_BACKDATE_SECONDS,
    ttl_seconds: int = Config.JWT_TTL_SECONDS,
) -> str:
    """
    Generate a signed JWT identifying the GitHub App.

    Token Format: base64url(header).base64url(claims).base64url(signature)
    - Header: {"alg": "RS256", "typ": "JWT"}
    - Claims: {"iat": now - backdate, "exp": now + ttl, "iss": app_id}
    - Signature: RSASSA-PKCS1-v1_5 over SHA-256

    Args:
        app_id: GitHub App identifier (issuer claim)
        private_key: PEM-encoded RSA private key
        now: Current time in epoch seconds (defaults to time.time())
        backdate_seconds: Clock-skew allowance subtracted from iat
        ttl_seconds: Lifetime; GitHub caps app JWTs at 10 minutes

    Returns:
        Compact JWT string

    Raises:
        ValueError: If the private key cannot be loaded as RSA
    """
    issued = int(now if now is not None else time.time())

    header = {"alg": "RS256", "typ": "JWT"}
    claims = {
        "iat": issued - backdate_seconds,
        "exp": issued + ttl_seconds,
        "iss": app_id,
    }

    signing_input = ".".join(
        _b64url(json.dumps(part, sort_keys=True, separators=(",", ":")).encode())
        for part in (header, claims)
    )

    signature = _load_private_key(private_key).sign(
        signing_input.encode(),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )

    return f"{signing_input}.{_b64url(signature)}"


def decode_jwt_claims(token: str) -> dict[str, Any] | None:
    """
    Decode JWT claims WITHOUT verifying the signature.

    Only for debugging and tests.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        return json.loads(_b64url_decode(parts[1]))
    except (ValueError, json.JSONDecodeError):
        return None
