from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


if not config.DATABASE_URL:
    raise RuntimeError("DATABASE_URL must be set.")

engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False

# Indexes that create_all() will not add to tables created by an earlier release.
SCHEDULING_INDEXES = {
    'appointments': [
        'CREATE INDEX IF NOT EXISTS idx_appointments_manager_time ON appointments(manager_id, scheduled_time)',
        'CREATE INDEX IF NOT EXISTS idx_appointments_inquiry ON appointments(inquiry_id)',
    ],
    'booking_tokens': [
        'CREATE UNIQUE INDEX IF NOT EXISTS idx_booking_tokens_secret ON booking_tokens(secret)',
        'CREATE INDEX IF NOT EXISTS idx_booking_tokens_expires ON booking_tokens(expires_at)',
    ],
    'questionnaire_tokens': [
        'CREATE UNIQUE INDEX IF NOT EXISTS idx_questionnaire_tokens_secret ON questionnaire_tokens(secret)',
        'CREATE INDEX IF NOT EXISTS idx_questionnaire_tokens_expires ON questionnaire_tokens(expires_at)',
    ],
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_scheduling_schema() -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        existing_tables = set(inspect(engine).get_table_names())

        with engine.begin() as connection:
            for table_name, statements in SCHEDULING_INDEXES.items():
                if table_name not in existing_tables:
                    continue
                for statement in statements:
                    connection.execute(text(statement))

        _scheduling_schema_checked = True
