import os
from pathlib import Path

from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / ".env.test"
load_dotenv(env_file)

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-for-learnsphere")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from learnsphere.auth.models.user import UserRole  # noqa: E402
from learnsphere.db.base import Base  # noqa: E402
from learnsphere.db.session import get_db  # noqa: E402
from learnsphere.main import app  # noqa: E402
from tests.utils.factories import create_user_factory  # noqa: E402
from tests.utils.helpers import create_access_token  # noqa: E402

USE_POSTGRES = os.environ.get("TEST_USE_POSTGRES") == "1"


@pytest.fixture(scope="session")
def test_database_url():
    if not USE_POSTGRES:
        yield "sqlite://"
        return

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = DockerContainer("postgres:16")
    container.with_exposed_ports(5432)
    container.with_env("POSTGRES_USER", "test")
    container.with_env("POSTGRES_PASSWORD", "test")
    container.with_env("POSTGRES_DB", "test")

    container.start()
    wait_for_logs(container, "database system is ready to accept connections", timeout=30)

    host = container.get_container_host_ip()
    port = container.get_exposed_port(5432)
    yield f"postgresql://test:test@{host}:{port}/test"
    container.stop()


@pytest.fixture(scope="session")
def test_engine(test_database_url):
    if test_database_url.startswith("sqlite"):
        engine = create_engine(
            test_database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(test_database_url)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="session")
def test_session_local(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(test_session_local):
    session = test_session_local()

    session.commit = session.flush

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
async def test_app(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def test_client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client


@pytest.fixture
def test_user(db_session):
    return create_user_factory(db_session, email="learner@example.com", role=UserRole.LEARNER)


@pytest.fixture
def test_instructor(db_session):
    return create_user_factory(
        db_session, email="instructor@example.com", name="Ada Instructor", role=UserRole.INSTRUCTOR
    )


@pytest.fixture
def test_other_instructor(db_session):
    return create_user_factory(
        db_session, email="grace@example.com", name="Grace Instructor", role=UserRole.INSTRUCTOR
    )


@pytest.fixture
def test_admin(db_session):
    return create_user_factory(db_session, email="admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def test_user_token(test_user):
    return create_access_token(test_user)


@pytest.fixture
def test_instructor_token(test_instructor):
    return create_access_token(test_instructor)


@pytest.fixture
def test_other_instructor_token(test_other_instructor):
    return create_access_token(test_other_instructor)


@pytest.fixture
def test_admin_token(test_admin):
    return create_access_token(test_admin)
