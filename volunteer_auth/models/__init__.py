from volunteer_auth.models.refresh_token import RefreshToken
from volunteer_auth.models.user import User, UserRole, UserStatus

__all__ = [
    "RefreshToken",
    "User",
    "UserRole",
    "UserStatus",
]
