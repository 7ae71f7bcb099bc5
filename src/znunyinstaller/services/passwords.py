"""Cryptographically sourced password generation."""

import secrets
import string

from znunyinstaller.constants import AUTOMATED_PASSWORD_LENGTH

ALPHANUMERIC = frozenset(string.ascii_letters + string.digits)


def generate_password(length: int = AUTOMATED_PASSWORD_LENGTH) -> str:
    """Returns exactly `length` characters drawn from [A-Za-z0-9]."""
    if length <= 0:
        raise ValueError("Password length must be positive.")

    password = ""
    while len(password) < length:
        chunk = secrets.token_urlsafe(length * 2)
        password += "".join(char for char in chunk if char in ALPHANUMERIC)
    return password[:length]
