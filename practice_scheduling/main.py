import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from practice_scheduling.core import config
from practice_scheduling.core.logging_config import setup_logging
from practice_scheduling.database import Base, engine, ensure_appointment_schema, ensure_schedule_schema
from practice_scheduling.models import appointment, availability, patient, staff  # noqa: F401
from practice_scheduling.routes import (
    appointment_routes,
    availability_routes,
    capacity_routes,
    productivity_routes,
    schedule_routes,
)

setup_logging(verbose=config.APP_ENV != 'production')
config.validate_runtime_config()

app = FastAPI(title='Practice Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schedule_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Practice Scheduling API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(schedule_routes.router)
app.include_router(capacity_routes.router, prefix='/capacity')
app.include_router(productivity_routes.router, prefix='/productivity')
