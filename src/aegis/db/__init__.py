# src/aegis/db/__init__.py
# Don't import session on package import; routers import aegis.db.session directly
from .base import Base  # safe to import

__all__ = ["Base"]
