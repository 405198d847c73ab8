# snwms/db/__init__.py
from snwms.db.base import Base, init_models
from snwms.db.session import get_sessionmaker

__all__ = ["Base", "init_models", "get_sessionmaker"]
