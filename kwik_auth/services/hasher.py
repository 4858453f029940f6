"""One-way hashing for passwords and refresh tokens at rest."""

import base64
import hashlib
import secrets

import bcrypt

from kwik_auth.config import get_settings
from kwik_auth.errors import InputError


class SecretHasher:
    """bcrypt over a SHA-256 pre-digest.

    bcrypt only reads the first 72 bytes of its input and signed refresh tokens
    are longer than that, so every secret is first reduced to a fixed-size
    base64 SHA-256 digest.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._decoy_digest: str | None = None

    @staticmethod
    def _prepare(plaintext: str) -> bytes:
        return base64.b64encode(hashlib.sha256(plaintext.encode("utf-8")).digest())

    def hash(self, plaintext: str) -> str:
        """Hash a secret with a fresh random salt."""
        if not plaintext:
            raise InputError("Cannot hash an empty value")
        return bcrypt.hashpw(self._prepare(plaintext), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, digest: str | None, plaintext: str) -> bool:
        """Constant-time check. Malformed or missing digests verify as False."""
        if not digest or not plaintext:
            return False
        try:
            return bcrypt.checkpw(self._prepare(plaintext), digest.encode("utf-8"))
        except ValueError:
            return False

    def verify_decoy(self, plaintext: str) -> bool:
        """Do the work of ``verify`` when there is no stored digest. Always False."""
        if self._decoy_digest is None:
            self._decoy_digest = self.hash(secrets.token_urlsafe(32))
        self.verify(self._decoy_digest, plaintext)
        return False


_secret_hasher: SecretHasher | None = None


def get_secret_hasher() -> SecretHasher:
    """Get singleton hasher instance."""
    global _secret_hasher
    if _secret_hasher is None:
        _secret_hasher = SecretHasher(rounds=get_settings().BCRYPT_ROUNDS)
    return _secret_hasher
