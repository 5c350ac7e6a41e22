"""
ORM models for accounts and the role catalog.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .security import (  # noqa: F401
    Role,
    User,
    UserRole,
)
