import os
import tempfile
from collections.abc import Generator

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="berryvision-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from berryvision import crud  # noqa: E402
from berryvision.api.deps import get_db  # noqa: E402
from berryvision.core.config import settings  # noqa: E402
from berryvision.main import app  # noqa: E402
from berryvision.models import GrowthThreshold, Plant  # noqa: E402


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    # Tests opt in to the model-backed paths explicitly.
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        crud.save(
            session,
            GrowthThreshold(temp_min=10.0, temp_max=30.0, humidity_min=60.0, humidity_max=85.0),
        )
        yield session


@pytest.fixture
def client(session: Session) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def plant(session: Session) -> Plant:
    return crud.create_plant(
        session=session,
        plant=Plant(plant_code="A-001", name="Row 1 bush", sector="north", crop_type="blueberry", variety="Biloxi"),
    )
