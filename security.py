# security.py
"""
Credential hashing for user and group passwords.

Stored hashes are format-tagged so old records keep working:

  pbkdf2$<iterations>$<saltB64>$<hashB64>   default (PBKDF2-HMAC-SHA256)
  $argon2id$...                             when PASSWORD_HASH_SCHEME=argon2
  pbkdf2:sha256:... / scrypt:...            werkzeug hashes from older installs
  <64 hex chars>                            legacy unsalted SHA-256, verify only

Anything that validates against an outdated format should be re-hashed by the
caller (see needs_rehash).
"""
import base64
import hashlib
import hmac
import os
import re

from passlib.hash import argon2 as argon2_hasher
from werkzeug.security import check_password_hash

PBKDF2_ITERATIONS = 120000
SALT_BYTES = 16
KEY_BYTES = 32
MAX_PBKDF2_ITERATIONS = 10 * PBKDF2_ITERATIONS

_LEGACY_SHA256_RE = re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE)
_WERKZEUG_PREFIXES = ("pbkdf2:", "scrypt:")


def _scheme() -> str:
    return (os.environ.get("PASSWORD_HASH_SCHEME") or "pbkdf2").strip().lower()


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _pbkdf2(plain: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", plain.encode("utf-8"), salt, iterations, KEY_BYTES)


def is_legacy_sha256(stored: str | None) -> bool:
    return bool(stored) and bool(_LEGACY_SHA256_RE.match(stored))


def is_argon2(stored: str | None) -> bool:
    return bool(stored) and stored.lstrip("$").startswith("argon2")


def hash_secret(plain: str, scheme: str | None = None) -> str:
    scheme = (scheme or _scheme())
    if scheme == "argon2":
        return argon2_hasher.hash(plain)
    salt = os.urandom(SALT_BYTES)
    digest = _pbkdf2(plain, salt, PBKDF2_ITERATIONS)
    return f"pbkdf2${PBKDF2_ITERATIONS}${_b64(salt)}${_b64(digest)}"


def _verify_pbkdf2(plain: str, stored: str) -> bool:
    parts = stored.split("$")
    if len(parts) != 4:
        return False
    try:
        iterations = int(parts[1])
        salt = base64.b64decode(parts[2], validate=True)
    except (ValueError, OverflowError):
        return False
    if not 0 < iterations <= MAX_PBKDF2_ITERATIONS:
        return False
    expected = _b64(_pbkdf2(plain, salt, iterations)).encode("ascii")
    return hmac.compare_digest(expected, parts[3].encode("utf-8"))


def verify_secret(plain: str, stored: str | None) -> bool:
    if plain is None or not stored:
        return False

    if is_argon2(stored):
        try:
            return argon2_hasher.verify(plain, stored)
        except (ValueError, TypeError):
            return False

    if stored.startswith("pbkdf2$"):
        return _verify_pbkdf2(plain, stored)

    if stored.startswith(_WERKZEUG_PREFIXES):
        try:
            return check_password_hash(stored, plain)
        except (ValueError, OverflowError):
            return False

    if is_legacy_sha256(stored):
        legacy = hashlib.sha256(plain.encode("utf-8")).hexdigest()
        return hmac.compare_digest(legacy, stored.lower())

    return False


def needs_rehash(stored: str | None) -> bool:
    if not stored:
        return True
    if is_argon2(stored):
        return _scheme() != "argon2"
    if stored.startswith("pbkdf2$"):
        if _scheme() == "argon2":
            return True
        try:
            return int(stored.split("$")[1]) < PBKDF2_ITERATIONS
        except (IndexError, ValueError):
            return True
    return True
