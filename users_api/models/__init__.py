# Alembic needs every model imported to see the full metadata
# users_api/models/__init__.py
from .base import Base
from .user import User

__all__ = ["Base", "User"]
