from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


# ---------------------------------------------------------
# SQLAlchemy Base class
# ---------------------------------------------------------
class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------
# Engine
# ---------------------------------------------------------
def create_db_engine(database_url: str, *, pool_size: int = 10, max_overflow: int = 5) -> Engine:
    """
    Build the engine whose connection pool is shared by every concurrent job.
    Tenant context is transaction-local (see docgen.db.tenant), so pooled
    connections can be reused safely.
    """
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=False,  # set True to log SQL
    )


# ---------------------------------------------------------
# Session factory
# ---------------------------------------------------------
def create_session_factory(engine: Engine) -> sessionmaker:
    # Records outlive their unit of work (returned to the message loop),
    # so attributes must stay loaded after commit.
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
