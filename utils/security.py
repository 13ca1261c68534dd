"""Security helpers for headers, tokens, hashing and the password baseline."""
import hashlib
import secrets

from flask import request


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers suitable for a JSON API that also serves uploaded images."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; img-src 'self'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(self), microphone=(), camera=()")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def generate_token(length: int = 32) -> str:
    return secrets.token_urlsafe(length)


def hash_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def password_meets_policy(password: str, min_length: int = 6) -> tuple[bool, str | None]:
    if len(password or "") < min_length:
        return False, f"Password must be at least {min_length} characters long."
    if not password.strip():
        return False, "Password cannot be blank."
    return True, None
