from .base import Base
from .session import build_engine, build_sessionmaker
from .utils import normalize_database_url

__all__ = [
    "Base",
    "build_engine",
    "build_sessionmaker",
    "normalize_database_url",
]
