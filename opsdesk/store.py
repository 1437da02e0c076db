from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from sqlalchemy.orm import Session

from opsdesk.config import settings
from opsdesk.db import build_engine, build_session_factory
from opsdesk.models import Base
from opsdesk.seed import load_fixture, seed

logger = logging.getLogger(__name__)


class DomainStore:
    """Session-scoped home of every entity collection.

    Each instance owns its own engine, so two stores never share state.
    ``reset()`` rebuilds the schema and reloads the seed the store was
    constructed with.
    """

    def __init__(self, seed_data: Mapping | None = None, *, database_url: str | None = None) -> None:
        self.seed_data: dict = dict(seed_data or {})
        self.engine = build_engine(database_url or settings.database_url)
        self._session_factory = build_session_factory(self.engine)
        self._build()

    @classmethod
    def from_fixture(cls, path: str | Path | None = None, *, database_url: str | None = None) -> DomainStore:
        return cls(load_fixture(path or settings.fixture_path), database_url=database_url)

    def _build(self) -> None:
        Base.metadata.create_all(self.engine)
        if not self.seed_data:
            return
        with self.session() as db:
            counts = seed(db, self.seed_data)
            db.commit()
        logger.info('Seeded domain store: %s', counts)

    def session(self) -> Session:
        return self._session_factory()

    def reset(self) -> None:
        Base.metadata.drop_all(self.engine)
        self._build()
        logger.info('Domain store reset')

    def dispose(self) -> None:
        self.engine.dispose()
