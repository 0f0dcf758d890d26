"""
PKCE (RFC 7636) and authorize URL helpers for the Etsy login flow.
S256 only; Etsy rejects plain challenges.
"""
import hashlib
import secrets
from base64 import urlsafe_b64encode
from urllib.parse import urlencode


def generate_state() -> str:
    """16 random bytes, hex; single-use CSRF token returned in the callback."""
    return secrets.token_hex(16)


def generate_verifier() -> str:
    """32 random bytes as base64url without padding (43 chars)."""
    return urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")


def generate_challenge(verifier: str) -> str:
    """S256 transform: base64url(SHA256(ascii(verifier))) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_authorize_url(
    *,
    authorize_url: str,
    client_id: str,
    redirect_uri: str,
    scope: str,
    state: str,
    code_challenge: str,
) -> str:
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{authorize_url}?{urlencode(params)}"
