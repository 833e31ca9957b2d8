import secrets

from werkzeug.security import check_password_hash, generate_password_hash


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def new_api_key() -> str:
    return secrets.token_urlsafe(32)


def api_keys_match(expected: str, presented: str) -> bool:
    return secrets.compare_digest(expected.encode(), presented.encode())
