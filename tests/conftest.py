import os

# Must be set before anything imports cinerate.core.config / cinerate.database
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["IS_TESTING"] = "true"
os.environ["PRIOR_REFRESH_SYNCHRONOUS"] = "true"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("CI", "1")

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

# Import models so Base.metadata is populated for create_all.
import cinerate.models  # noqa: E402,F401
from cinerate.database import Base, SessionLocal, engine  # noqa: E402
from cinerate.init_db import init_db  # noqa: E402
from cinerate.models import Entity, Voter  # noqa: E402
from cinerate.services.cache_service import CacheService  # noqa: E402
from cinerate.services.prior_refresher import PriorRefresher  # noqa: E402
from cinerate.services.profile_service import ProfileService  # noqa: E402
from cinerate.services.rating_service import RatingService  # noqa: E402
from cinerate.services.ratings_config import DEFAULT_RATINGS_CONFIG  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema():
    init_db(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db() -> Session:
    """
    Session on the shared in-memory engine.

    Services commit for real (the prior refresher reads committed rows through
    its own session), so tables are emptied after each test instead of
    rolling back an outer transaction.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def refresher():
    r = PriorRefresher(DEFAULT_RATINGS_CONFIG, synchronous=True)
    yield r
    r.shutdown()


@pytest.fixture
def cache() -> CacheService:
    # No Redis client and no URL: in-memory backend
    return CacheService()


@pytest.fixture
def rating_service(db, refresher, cache) -> RatingService:
    return RatingService(db, refresher, cache=cache)


@pytest.fixture
def profile_service(db, cache) -> ProfileService:
    return ProfileService(db, cache=cache)


@pytest.fixture
def make_voter(db):
    def _make(display_name: str = "Ada") -> Voter:
        voter = Voter(display_name=display_name)
        db.add(voter)
        db.commit()
        return voter

    return _make


@pytest.fixture
def make_entity(db):
    def _make(title: str = "Metropolis", category: str = "drama", release_year=None) -> Entity:
        entity = Entity(title=title, category=category, release_year=release_year)
        db.add(entity)
        db.commit()
        return entity

    return _make
