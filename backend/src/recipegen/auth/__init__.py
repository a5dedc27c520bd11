from .dependencies import get_current_user, get_optional_user
from .security import create_access_token, decode_access_token, hash_password, verify_password

__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "get_optional_user",
    "hash_password",
    "verify_password",
]
