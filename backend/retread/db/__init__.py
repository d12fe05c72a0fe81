import importlib
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from retread.config import settings

log = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL
_connect_args = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)
engine = create_engine(
    DATABASE_URL, future=True, echo=False, connect_args=_connect_args
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

MODEL_MODULES = [
    "retread.models.shipment",
    "retread.models.return_event",
    "retread.models.store_version",
]


def init_db(reset: bool = None):
    """
    Create the schema.

    With reset=True (or RESET_DB set in the environment / settings) every
    table is dropped first. Model modules are imported here so the metadata
    knows about all tables before create_all runs.
    """
    if reset is None:
        env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
        reset = env_reset or settings.RESET_DB

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    if reset:
        log.info("Resetting database %s", DATABASE_URL)
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.debug("Database initialized")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
