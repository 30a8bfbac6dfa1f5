from .config import settings
from .security import create_access_token, user_id_from_token, verify_token

__all__ = [
    "create_access_token",
    "settings",
    "user_id_from_token",
    "verify_token",
]
