# src/docgen/db/tenant.py

"""
Tenant isolation for the relational store.

Every session used against document tables is bound to exactly one tenant.
Whenever such a session begins a transaction on a connection, the tenant is
written into the PostgreSQL setting ``app.current_tenant`` with
``set_config(..., is_local => true)``. Row-level-security policies read that
setting, and because it is transaction-local it disappears at COMMIT/ROLLBACK,
so a pooled connection handed to another job never carries a stale tenant.
"""

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy import event, text
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

TENANT_INFO_KEY = "tenant_id"
TENANT_SETTING = "app.current_tenant"

_SET_TENANT_SQL = text("SELECT set_config(:setting, :tenant_id, true)")


def set_session_tenant(db: Session, tenant_id: UUID) -> None:
    db.info[TENANT_INFO_KEY] = str(tenant_id)


def session_tenant(db: Session) -> str | None:
    return db.info.get(TENANT_INFO_KEY)


@event.listens_for(Session, "after_begin")
def _apply_tenant_context(session, transaction, connection):
    tenant_id = session.info.get(TENANT_INFO_KEY)
    if tenant_id is None:
        return
    if connection.dialect.name != "postgresql":
        # Only PostgreSQL enforces row-level security; other dialects rely on
        # the tenant predicates every repository query carries.
        return
    connection.execute(_SET_TENANT_SQL, {"setting": TENANT_SETTING, "tenant_id": tenant_id})
    logger.debug("Applied tenant context tenant=%s", tenant_id)


@contextmanager
def tenant_session(session_factory: sessionmaker, tenant_id: UUID) -> Iterator[Session]:
    """
    One unit of work for one tenant: acquire a session, bind the tenant,
    run the caller's queries, release the connection.

    Uncommitted work is rolled back on error.
    """
    db = session_factory()
    set_session_tenant(db, tenant_id)
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
