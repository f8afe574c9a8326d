from userdir.models.user import User

__all__ = [
    "User",
]
