from .models import Base, DeploymentTable
from .operations import (
    create_new_sqlite_database,
    get_scoped_sqlite_session,
    get_sqlite_engine,
)

__all__ = (
    "Base",
    "DeploymentTable",
    "create_new_sqlite_database",
    "get_scoped_sqlite_session",
    "get_sqlite_engine",
)
