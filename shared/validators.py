"""
Account input validators — framework-agnostic, pure functions.

All validators are stateless and never touch the database; uniqueness checks
belong to the repository layer.
"""

from __future__ import annotations

import re
from typing import List, Tuple

import validators as _validators

_USERNAME_RE = re.compile(r"^[A-Za-z_-][A-Za-z0-9_-]{2,19}$")
_NAME_FORBIDDEN_RE = re.compile(r"[0-9!\"#$%&()*+,./:;<=>?@\[\\\]^_`{|}~¡-¿×÷]")
_SPECIALS = "~!@#$%^&*()_-+={}[]|\\:;\"'<,>.?/"
PASSWORD_MAX_LENGTH = 128


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a deliverable-looking address.

    Rules on top of ``validators.email``:
    - at most 254 characters overall, 64 in the local part
    - the domain has a dot-separated TLD of at least two letters
    """
    if not isinstance(email, str):
        return False
    email = email.strip()
    if not email or len(email) > 254 or email.count("@") != 1:
        return False
    local_part, domain = email.split("@")
    if not local_part or len(local_part) > 64:
        return False
    if "." not in domain or not re.fullmatch(r"[A-Za-z]{2,}", domain.rsplit(".", 1)[1]):
        return False
    return bool(_validators.email(email))


def validate_username(username: str) -> bool:
    """Return True for 3–20 chars of ``[A-Za-z0-9_-]`` not starting with a digit."""
    if not isinstance(username, str):
        return False
    return bool(_USERNAME_RE.match(username.strip()))


def validate_full_name(name: str) -> bool:
    """Return True for a 2–50 char name without digits or special characters."""
    if not isinstance(name, str):
        return False
    name = name.strip()
    if len(name) < 2 or len(name) > 50:
        return False
    if name.startswith("-") or name.endswith("-"):
        return False
    return not _NAME_FORBIDDEN_RE.search(name)


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate password strength.

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []

    if len(password) < 8:
        missing.append("At least 8 characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append(f"Maximum {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")
    if not re.search(r"[0-9]", password):
        missing.append("At least one number")
    if not any(char in _SPECIALS for char in password):
        missing.append("At least one special character")

    return len(missing) == 0, missing

