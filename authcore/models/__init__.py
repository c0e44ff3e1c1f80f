"""SQLAlchemy models exposed by the backend."""
from .base import Base
from .login_attempt import LoginAttempt
from .user import User, UserRole

__all__ = ["Base", "LoginAttempt", "User", "UserRole"]
