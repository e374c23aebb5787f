"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.files.db import session as db_session
from app.packages.files.models.base import Base
from app.packages.files.models.file import File  # noqa: F401 - ensure table registration
from app.packages.files.models.user import User  # noqa: F401 - ensure table registration

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create the ``users`` and ``files`` tables if they do not exist."""
    Base.metadata.create_all(bind=db_session.engine)
    logger.debug("Database tables ensured on %s", db_session.engine.url.render_as_string(hide_password=True))
