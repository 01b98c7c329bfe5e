from __future__ import annotations

import re

from werkzeug.security import check_password_hash, generate_password_hash

from utils import ApiError


MIN_ADMIN_PASSWORD_LEN = 10
MAX_PASSWORD_LEN = 256

_HAS_LETTER = re.compile(r"[A-Za-z]")
_HAS_DIGIT = re.compile(r"\d")


def validate_admin_password(password: str) -> str:
    pwd = str(password or "")
    if not pwd:
        raise ApiError("BAD_REQUEST", "Missing password")
    if len(pwd) < MIN_ADMIN_PASSWORD_LEN:
        raise ApiError("BAD_REQUEST", f"Admin password must be at least {MIN_ADMIN_PASSWORD_LEN} characters")
    if len(pwd) > MAX_PASSWORD_LEN:
        raise ApiError("BAD_REQUEST", "Password is too long")
    if not _HAS_LETTER.search(pwd) or not _HAS_DIGIT.search(pwd):
        raise ApiError("BAD_REQUEST", "Admin password must include a letter and a number")
    return pwd


def hash_password(password: str) -> str:
    pwd = validate_admin_password(password)
    return generate_password_hash(pwd, method="scrypt", salt_length=16)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash or len(str(password or "")) > MAX_PASSWORD_LEN:
        return False
    try:
        return check_password_hash(str(password_hash), str(password or ""))
    except ValueError:
        return False
