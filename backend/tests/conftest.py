import os
import sys
import tempfile
from pathlib import Path

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Point configuration at throwaway locations before any app module reads it
_test_home = Path(tempfile.mkdtemp(prefix="profile-aggregates-tests-"))
os.environ["PROFILE_DATABASE_URL"] = f"sqlite:///{_test_home / 'app.db'}"
os.environ["PROFILE_LOG_DIR"] = str(_test_home / "logs")

# Now import after path is set
import pytest
from sqlalchemy.orm import sessionmaker
from database import build_engine
from init_db import init_database
from repositories.profile_repository import ProfileRepository
from services.profile_service import ProfileService


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database so each worker thread gets its own connection"""
    test_engine = build_engine(f"sqlite:///{tmp_path / 'profiles.db'}")
    init_database(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(db_session):
    return ProfileRepository(db_session)


@pytest.fixture
def service(repository):
    return ProfileService(repository)
