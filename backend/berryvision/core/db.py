import logging

from sqlmodel import Session, SQLModel, create_engine

from berryvision import crud
from berryvision.core.config import settings
from berryvision.models import GrowthThreshold

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    settings.SQLALCHEMY_DATABASE_URI, **_engine_kwargs(settings.SQLALCHEMY_DATABASE_URI)
)


def init_db(session: Session) -> None:
    # Tables should be created with migrations in production; create_all keeps
    # local runs self-contained.
    SQLModel.metadata.create_all(session.get_bind())

    crud.get_default_knowledge_source(session=session)

    if not crud.get_default_threshold(session=session):
        # Generic berry comfort band used for environmental alerts.
        crud.save(
            session,
            GrowthThreshold(temp_min=10.0, temp_max=30.0, humidity_min=60.0, humidity_max=85.0),
        )
        logger.info("Seeded default growth thresholds")
