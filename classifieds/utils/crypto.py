"""Request signing for user sessions (Ed25519 via PyNaCl).

Clients hold the private key; the service only stores the public key given at
registration. Each request is signed over::

    <timestamp>\\n<METHOD>\\n<path>\\n<sha256(body) hex>
"""

import hashlib
import secrets
import uuid
from datetime import UTC, datetime

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

AUTH_SCHEME = "UserSig"


def generate_keypair() -> tuple[str, str]:
    """Generate an Ed25519 keypair. Returns (private_key_hex, public_key_hex)."""
    signing_key = SigningKey.generate()
    return (
        signing_key.encode(encoder=HexEncoder).decode(),
        signing_key.verify_key.encode(encoder=HexEncoder).decode(),
    )


def signing_payload(timestamp: str, method: str, path: str, body: bytes) -> bytes:
    digest = hashlib.sha256(body).hexdigest()
    return "\n".join((timestamp, method.upper(), path, digest)).encode()


def sign_request(
    private_key_hex: str, timestamp: str, method: str, path: str, body: bytes
) -> str:
    """Sign a request and return the hex-encoded signature."""
    signing_key = SigningKey(private_key_hex.encode(), encoder=HexEncoder)
    signed = signing_key.sign(signing_payload(timestamp, method, path, body), encoder=HexEncoder)
    return signed.signature.decode()


def verify_signature(
    public_key_hex: str,
    signature_hex: str,
    timestamp: str,
    method: str,
    path: str,
    body: bytes,
) -> bool:
    """Return True if the signature matches the user's public key."""
    try:
        verify_key = VerifyKey(public_key_hex.encode(), encoder=HexEncoder)
        verify_key.verify(
            signing_payload(timestamp, method, path, body),
            HexEncoder.decode(signature_hex.encode()),
        )
    except (BadSignatureError, CryptoError, ValueError, TypeError):
        return False
    return True


def parse_authorization(header: str) -> tuple[uuid.UUID, str]:
    """Split ``UserSig <user_id>:<signature>``. Raises ValueError if malformed."""
    scheme, _, credentials = header.partition(" ")
    if scheme != AUTH_SCHEME or not credentials:
        raise ValueError("Invalid authorization scheme")
    user_id, sep, signature = credentials.partition(":")
    if not sep or not signature:
        raise ValueError("Malformed authorization header")
    try:
        return uuid.UUID(user_id), signature
    except ValueError:
        raise ValueError("Malformed authorization header")


def generate_nonce() -> str:
    return secrets.token_hex(16)


def is_timestamp_valid(timestamp: str, max_age_seconds: int = 30) -> bool:
    """Timestamps must be timezone-aware ISO-8601 and within the allowed skew."""
    try:
        ts = datetime.fromisoformat(timestamp)
    except (ValueError, TypeError):
        return False
    if ts.tzinfo is None:
        return False
    return abs((datetime.now(UTC) - ts).total_seconds()) <= max_age_seconds
