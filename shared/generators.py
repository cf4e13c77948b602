"""
Random code and token generators — pure, side-effect-free functions.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets
import string


def generate_otp_code(length: int = 6, alphabet: str = string.digits) -> str:
    """Generate a cryptographically secure one-time passcode.

    Args:
        length: Number of characters (default 6).
        alphabet: Characters to draw from (default decimal digits). Pass
            ``string.ascii_uppercase + string.digits`` for alphanumeric codes.

    Returns:
        String of *length* characters drawn uniformly from *alphabet*.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    if not alphabet:
        raise ValueError("OTP alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_token_id() -> str:
    """Random identifier for the ``jti`` claim of issued tokens."""
    return secrets.token_hex(16)
