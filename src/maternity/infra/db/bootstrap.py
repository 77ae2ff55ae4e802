from __future__ import annotations

import logging
from typing import Optional

from src.maternity.config import settings
from src.maternity.infra.db.inmemory import COLLECTIONS, RepositoryRegistry, store
from src.maternity.infra.db.models import Base
from src.maternity.infra.db.session import create_db_engine, create_sqlalchemy_session_factory
from src.maternity.infra.db.sql_documents import SqlDocumentRepository

logger = logging.getLogger("maternity.db")


def init_sql_repositories(
    database_url: Optional[str] = None,
    *,
    registry: RepositoryRegistry = store,
    force: bool = False,
) -> bool:
    """Optionally switch in-memory repositories to SQL-backed implementations.

    Runs on application startup. Unless ``force`` is given, this is a no-op
    when USE_SQL_REPOS is disabled or no database URL is configured, and the
    in-memory repositories stay active. Returns True when the swap happened.
    """

    if not (settings.use_sql_repos or force):
        return False

    db_url = database_url or settings.database_url
    if not db_url:
        logger.warning("USE_SQL_REPOS is enabled but DATABASE_URL is not set; keeping in-memory repositories")
        return False

    engine = create_db_engine(db_url)
    # Tables are created on demand; real deployments should manage the schema
    # with migrations.
    Base.metadata.create_all(engine)
    session_factory = create_sqlalchemy_session_factory(engine)

    for attr, collection, model in COLLECTIONS:
        setattr(registry, attr, SqlDocumentRepository(session_factory, collection, model))

    logger.info("SQL document repositories initialised for %d collections", len(COLLECTIONS))
    return True
