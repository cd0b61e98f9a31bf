import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.logging_config import setup_logging
from backend.database import Base, engine, ensure_scheduling_schema
from backend.models import appointment, availability, token  # noqa: F401
from backend.routes import public_booking_routes, public_questionnaire_routes, scheduling_routes
from backend.services.registry import build_services
from backend.tasks.token_sweeper import TokenSweeper

setup_logging()
config.validate_runtime_config()

app = FastAPI(title='Rental Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_scheduling_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')

    services = build_services()
    app.state.services = services
    app.state.token_sweeper = None

    if config.TOKEN_SWEEP_ENABLED:
        sweeper = TokenSweeper(services.tokens, config.TOKEN_SWEEP_INTERVAL_MINUTES)
        sweeper.start()
        app.state.token_sweeper = sweeper


@app.on_event('shutdown')
def shutdown() -> None:
    sweeper = getattr(app.state, 'token_sweeper', None)
    if sweeper is not None:
        sweeper.stop()

    services = getattr(app.state, 'services', None)
    if services is not None:
        services.close()


@app.get('/')
def root():
    return {'status': 'Rental Scheduling API Running'}


app.include_router(scheduling_routes.router, prefix='/scheduling')
app.include_router(public_booking_routes.router, prefix='/public/booking')
app.include_router(public_questionnaire_routes.router, prefix='/public/questionnaire')
