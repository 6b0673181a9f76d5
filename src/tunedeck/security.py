"""Password hashing helpers.

Hashes are PBKDF2-HMAC-SHA256 with a per-password random salt, encoded as
``pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>`` so the iteration
count can be raised later without invalidating stored hashes.
"""

import hashlib
import hmac
import os

from .config import settings

ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, iterations: int | None = None) -> str:
    iterations = iterations or settings.password_hash_iterations
    salt = os.urandom(SALT_BYTES)
    digest = _derive(password, salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def check_password_hash(password: str, password_hash: str) -> bool:
    """Return True when ``password`` matches the stored ``password_hash``."""
    try:
        algorithm, iterations, salt_hex, digest_hex = password_hash.split("$")
        if algorithm != ALGORITHM:
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    return hmac.compare_digest(_derive(password, salt, rounds), expected)
