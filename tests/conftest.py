#-------------------------------------------------------------------------bh-
# pytest configuration and fixtures for LaLA evidence tests
#-------------------------------------------------------------------------eh-

import random
import sys
from pathlib import Path

import pytest

# Add project root and src to path for imports
PROJ_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJ_ROOT / 'src'))
sys.path.insert(0, str(PROJ_ROOT / 'tests'))

from fixtures.test_config import (
    create_test_engine,
    create_test_session_factory,
    populate_lms,
)
from fixtures.fakes import DictSchema


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep developer .env files and LALA_* variables out of the tests."""
    for name in ('LALA_DB_URL', 'LALA_EVIDENCE_DIR', 'LALA_TEST_SET_SIZE', 'LALA_LOG_FILE'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def rng():
    """Seeded random source so pseudonyms and shuffles are reproducible."""
    return random.Random(1234)


@pytest.fixture
def lms_engine(tmp_path):
    """File-backed LMS database with the sample rows."""
    engine = create_test_engine(f"sqlite:///{tmp_path}/lms.db")
    populate_lms(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def SessionFactory(lms_engine):
    """Session factory on the LMS database with the LaLA tables created."""
    return create_test_session_factory(lms_engine)


@pytest.fixture
def session(SessionFactory):
    """
    Provide a test session.

    Creates a new session for each test and rolls back after the test completes.
    """
    session = SessionFactory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def evidence_dir(tmp_path):
    return tmp_path / 'evidence'


@pytest.fixture
def two_table_schema():
    """
    Two-table schema: A rows reference B through their bid column.

    A = {1: bid 10, 2: bid 10, 3: bid 20}, B = {10, 20, 30}
    """
    return DictSchema({
        'A': [
            {'id': 1, 'bid': 10},
            {'id': 2, 'bid': 10},
            {'id': 3, 'bid': 20},
        ],
        'B': [
            {'id': 10, 'name': 'ten'},
            {'id': 20, 'name': 'twenty'},
            {'id': 30, 'name': 'thirty'},
        ],
    })
