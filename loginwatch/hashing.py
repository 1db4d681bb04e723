"""Password digests used for reporting and breach lookups."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass


@dataclass(frozen=True)
class PasswordDigest:
    """Digests of one captured password. Never holds the plaintext."""

    sha512: str
    sha1: str

    @property
    def breach_prefix(self) -> str:
        return self.sha1[:5]


def sha512_hex(value: str) -> str:
    return hashlib.sha512(value.encode("utf-8")).hexdigest()


def sha1_hex(value: str) -> str:
    """Uppercase SHA-1, the format breach range APIs index by."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest().upper()


def digest_password(password: str) -> PasswordDigest:
    return PasswordDigest(sha512=sha512_hex(password), sha1=sha1_hex(password))
