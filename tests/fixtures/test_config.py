"""
Test configuration for a local SQLite LMS database.

Provides engines, a minimal Moodle-like schema and session factories for
testing the evidence pipeline without a MySQL server.

The sample data:

    user              1..5
    course            1, 2
    role              5 (student)
    enrol             10 -> course 1, 11 -> course 2 (both role 5)
    user_enrolments   100: enrol 10 / user 1     101: enrol 10 / user 2
                      102: enrol 10 / user 3     103: enrol 11 / user 4
                      104: enrol 11 / user 1
"""

from contextlib import contextmanager

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lala.models import Base


lms_metadata = MetaData()

user_table = Table(
    'user', lms_metadata,
    Column('id', Integer, primary_key=True),
    Column('username', String(100), unique=True),
    Column('firstname', String(100)),
    Column('idnumber', String(100)),
)

course_table = Table(
    'course', lms_metadata,
    Column('id', Integer, primary_key=True),
    Column('fullname', String(255)),
)

role_table = Table(
    'role', lms_metadata,
    Column('id', Integer, primary_key=True),
    Column('shortname', String(100)),
)

enrol_table = Table(
    'enrol', lms_metadata,
    Column('id', Integer, primary_key=True),
    Column('courseid', Integer),
    Column('enrol', String(20)),
    Column('roleid', Integer),
)

user_enrolments_table = Table(
    'user_enrolments', lms_metadata,
    Column('id', Integer, primary_key=True),
    Column('enrolid', Integer),
    Column('userid', Integer),
    Column('status', Integer),
    Column('timecreated', Integer),
)

LMS_ROWS = {
    user_table: [
        {'id': 1, 'username': 'alice', 'firstname': 'Alice', 'idnumber': 'A1'},
        {'id': 2, 'username': 'bob', 'firstname': 'Bob', 'idnumber': 'B2'},
        {'id': 3, 'username': 'carol', 'firstname': 'Carol', 'idnumber': ''},
        {'id': 4, 'username': 'dave', 'firstname': 'Dave', 'idnumber': None},
        {'id': 5, 'username': 'erin', 'firstname': 'Erin', 'idnumber': 'E5'},
    ],
    course_table: [
        {'id': 1, 'fullname': 'Statistics 101'},
        {'id': 2, 'fullname': 'Linear Algebra'},
    ],
    role_table: [
        {'id': 5, 'shortname': 'student'},
    ],
    enrol_table: [
        {'id': 10, 'courseid': 1, 'enrol': 'manual', 'roleid': 5},
        {'id': 11, 'courseid': 2, 'enrol': 'self', 'roleid': 5},
    ],
    user_enrolments_table: [
        {'id': 100, 'enrolid': 10, 'userid': 1, 'status': 0, 'timecreated': 1700000000},
        {'id': 101, 'enrolid': 10, 'userid': 2, 'status': 0, 'timecreated': 1700000100},
        {'id': 102, 'enrolid': 10, 'userid': 3, 'status': 0, 'timecreated': 1700000200},
        {'id': 103, 'enrolid': 11, 'userid': 4, 'status': 0, 'timecreated': 1700000300},
        {'id': 104, 'enrolid': 11, 'userid': 1, 'status': 1, 'timecreated': 1700000400},
    ],
}


def create_test_engine(url='sqlite://', echo=False):
    """
    Create SQLAlchemy engine for a test database.

    Args:
        url: Database URL, in-memory SQLite by default
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        SQLAlchemy Engine instance
    """
    if url == 'sqlite://':
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(url, echo=echo, poolclass=StaticPool,
                             connect_args={'check_same_thread': False})
    return create_engine(url, echo=echo)


def populate_lms(engine):
    """Create the LMS tables and insert the sample rows."""
    lms_metadata.create_all(engine)
    with engine.begin() as conn:
        for table, rows in LMS_ROWS.items():
            conn.execute(insert(table), rows)


def create_test_session_factory(engine):
    """
    Create a session factory with the LaLA bookkeeping tables in place.

    Returns:
        sessionmaker instance
    """
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False)


@contextmanager
def get_test_session_rollback(SessionLocal):
    """
    Context manager for test sessions that ALWAYS rollback.
    """
    session = SessionLocal()
    try:
        yield session
        session.rollback()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
