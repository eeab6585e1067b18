import os
from contextvars import ContextVar

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Pin the app to the test runtime before any compliance module reads the environment.
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("DEV_MODE", "false")
os.environ.pop("APP_BASE_URL", None)
for _provider_var in ("RESEND_API_KEY", "SENDGRID_API_KEY", "MAILGUN_API_KEY", "SMTP_HOST", "TWILIO_ACCOUNT_SID",
                      "ANTHROPIC_API_KEY"):
    os.environ.pop(_provider_var, None)

USE_TESTCONTAINERS = os.getenv("USE_TESTCONTAINERS", "0") == "1"

_current_session: ContextVar[object] = ContextVar("_current_session", default=None)
# Fallback for threadpool contexts where ContextVar may not propagate
_GLOBAL_SESSION = None


# Session-wide Postgres test container, opt-in via USE_TESTCONTAINERS=1
@pytest.fixture(scope="session")
def _test_postgres():
    if not USE_TESTCONTAINERS:
        yield None
        return
    from testcontainers.postgres import PostgresContainer

    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    with PostgresContainer(image) as pg:
        url = pg.get_connection_url()
        # Normalize driver to the psycopg2 default used by the app
        if "+" in url:
            parts = url.split("+")
            url = parts[0] + "://" + parts[1].split("//", 1)[1]
        os.environ["TEST_DATABASE_URL"] = url
        import compliance.db.database as db_mod

        db_mod.engine.dispose()
        db_mod.engine = create_engine(url, future=True)
        db_mod.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_mod.engine)
        yield url


@pytest.fixture(scope="session")
def _engine(_test_postgres):
    import compliance.db.database as db_mod

    return db_mod.engine


# Postgres gets the Alembic chain; SQLite gets metadata.create_all
@pytest.fixture(scope="session", autouse=True)
def _migrated_db(_test_postgres, _engine):
    if _test_postgres:
        from alembic import command
        from alembic.config import Config

        cfg = Config("alembic.ini")
        cfg.set_main_option("sqlalchemy.url", _test_postgres)
        command.upgrade(cfg, "head")
    else:
        from compliance.db.models import Base

        Base.metadata.create_all(bind=_engine)
    yield


@pytest.fixture(scope="session")
def _SessionLocal(_engine):
    return sessionmaker(bind=_engine, autoflush=False, autocommit=False)


def _truncate_all(engine):
    from compliance.db.models import Base

    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# Per-test session. Postgres runs each test inside an outer transaction that
# is rolled back; SQLite clears every table afterwards instead.
@pytest.fixture
def db_session(_engine, _SessionLocal):
    global _GLOBAL_SESSION
    if USE_TESTCONTAINERS:
        connection = _engine.connect()
        trans = connection.begin()
        session = _SessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    else:
        connection = trans = None
        session = _SessionLocal()
    token = _current_session.set(session)
    _GLOBAL_SESSION = session
    try:
        yield session
    finally:
        _current_session.reset(token)
        _GLOBAL_SESSION = None
        session.close()
        if trans is not None:
            trans.rollback()
            connection.close()
        else:
            _truncate_all(_engine)


import compliance.db.database as db_module
from fastapi.testclient import TestClient
from compliance.api.main import app


def _override_get_db():
    # Prefer ContextVar-bound session
    session = _current_session.get()
    if session is not None:
        yield session
        return
    # Fall back to module-global when running inside threadpool where ContextVar may not propagate
    if _GLOBAL_SESSION is not None:
        yield _GLOBAL_SESSION
        return
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


app.dependency_overrides[db_module.get_db] = _override_get_db


@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def client(db_session):
    return TestClient(app)


class RecordingEmailService:
    """Renders the real templates but records sends instead of calling a provider."""

    def __init__(self):
        from compliance.services.transactional_email_service import TransactionalEmailService

        self._renderer = TransactionalEmailService()
        self.sent = []
        self.failing = False

    def render_template(self, template_name, context):
        return self._renderer.render_template(template_name, context)

    async def send_email(self, to_email, subject, html_content, text_content=None):
        if self.failing:
            return {"success": False, "provider": "test", "error": "provider unavailable"}
        self.sent.append(
            {"to": to_email, "subject": subject, "html": html_content, "text": text_content}
        )
        return {"success": True, "provider": "test", "message_id": f"msg-{len(self.sent)}"}


@pytest.fixture(autouse=True)
def email_outbox(monkeypatch):
    from compliance.services import transactional_email_service

    service = RecordingEmailService()
    monkeypatch.setattr(transactional_email_service, "_email_service", service)
    yield service


@pytest.fixture(autouse=True)
def _isolated_runtime(tmp_path, monkeypatch):
    from compliance.services import storage, form_service
    from compliance.utils.feature_flags import refresh_feature_flag_cache

    monkeypatch.setenv("DOCUMENT_STORAGE_DIR", str(tmp_path / "documents"))
    storage.reset_blob_store()
    refresh_feature_flag_cache()
    form_service.rate_limiter.reset()
    yield
    storage.reset_blob_store()
    refresh_feature_flag_cache()
