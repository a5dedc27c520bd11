import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlmodel import Session, SQLModel, create_engine

from recipegen.core import database as core_database
from recipegen.core.config import get_settings
from recipegen.core.database import get_session
from recipegen.core.errors import ParseError
from recipegen.main import create_app
from recipegen.services.ai_gateway import get_ai_gateway


SAMPLE_RECIPE_JSON: Dict[str, Any] = {
    "title": "Garlic Tomato Pasta",
    "description": "Quick weeknight pasta",
    "ingredients": [
        {"name": "pasta", "quantity": "200", "unit": "g"},
        {"name": "tomato", "quantity": "2", "unit": "piece"},
        {"name": "garlic", "quantity": "1 1/2", "unit": "clove"},
    ],
    "instructions": [
        {"step": 1, "instruction": "Boil the pasta."},
        {"step": 2, "instruction": "Fry garlic and tomato, toss with pasta."},
    ],
    "nutrition": {"calories": 420, "protein": 14, "carbs": 70, "fat": 9},
    "difficulty": "easy",
    "prep_time": 10,
    "cook_time": 15,
    "dietary_tags": ["Vegetarian"],
}


class FakeAIGateway:
    """Stands in for AIGateway; records prompts and replays canned answers."""

    def __init__(self):
        self.recipe: Optional[Dict[str, Any]] = dict(SAMPLE_RECIPE_JSON)
        self.recipe_error: Optional[Exception] = None
        self.ingredients: List[Dict[str, Any]] = [
            {"name": "tomato", "confidence": 0.9},
            {"name": "onion", "confidence": 0.8},
        ]
        self.prompts: List[str] = []
        self.images: List[bytes] = []

    @property
    def available(self) -> bool:
        return True

    def generate_recipe_json(self, prompt: str):
        self.prompts.append(prompt)
        if self.recipe_error is not None:
            raise self.recipe_error
        if self.recipe is None:
            raise ParseError("Failed to parse recipe data")
        return dict(self.recipe), "fake-model"

    def recognize_ingredients(self, jpeg_bytes: bytes):
        self.images.append(jpeg_bytes)
        return list(self.ingredients)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_ai() -> FakeAIGateway:
    return FakeAIGateway()


@pytest.fixture(scope="function")
def test_app(monkeypatch, fake_ai) -> Iterator[FastAPI]:
    # Use a fresh SQLite DB file in a temp dir per test for isolation
    tmp = tempfile.TemporaryDirectory()
    db_path = Path(tmp.name) / "test.db"
    db_url = f"sqlite:///{db_path}"

    engine = create_engine(db_url, connect_args={"check_same_thread": False})

    # Initialize tables
    from recipegen import models  # noqa: F401
    SQLModel.metadata.create_all(engine)

    def _override_get_session():
        with Session(engine) as session:
            yield session

    # patch global engine/init_db so startup hooks operate on the test database
    monkeypatch.setattr(core_database, "engine", engine, raising=False)

    def _init_db():
        SQLModel.metadata.create_all(engine)

    monkeypatch.setattr(core_database, "init_db", _init_db, raising=False)
    monkeypatch.setattr(get_settings(), "seed_sample_data", False, raising=False)

    app = create_app()
    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_ai_gateway] = lambda: fake_ai

    try:
        yield app
    finally:
        app.dependency_overrides.clear()
        with suppress(Exception):
            engine.dispose()
        tmp.cleanup()


@pytest.fixture
async def client(test_app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def db_session(test_app: FastAPI):
    override = test_app.dependency_overrides[get_session]
    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        with suppress(StopIteration):
            next(generator)


async def register_user(
    client: AsyncClient,
    email: str = "cook@example.com",
    password: str = "secret123",
    name: str = "Cook",
) -> Dict[str, Any]:
    resp = await client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def register():
    return register_user


@pytest.fixture
async def auth_headers(client: AsyncClient) -> Dict[str, str]:
    data = await register_user(client)
    return {"Authorization": f"Bearer {data['token']}"}
