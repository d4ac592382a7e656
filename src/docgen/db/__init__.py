from .database import Base, create_db_engine, create_session_factory
from .tenant import tenant_session, set_session_tenant

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "tenant_session",
    "set_session_tenant",
]
