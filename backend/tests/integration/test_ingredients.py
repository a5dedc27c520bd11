from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from recipegen.models.recipes import Recipe, RecipeIngredient


def _jpeg(size=(64, 48)):
    buf = BytesIO()
    Image.new("RGB", size, (10, 120, 10)).save(buf, "JPEG")
    return buf.getvalue()


@pytest.mark.asyncio
async def test_recognize_returns_ingredients(client, fake_ai):
    resp = await client.post(
        "/api/ingredients/recognize",
        files={"image": ("fridge.jpg", _jpeg(), "image/jpeg")},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["message"] == "Recognized 2 ingredients"
    assert body["ingredients"][0] == {"name": "tomato", "confidence": 0.9}
    # the gateway receives the re-encoded JPEG
    assert Image.open(BytesIO(fake_ai.images[0])).format == "JPEG"


@pytest.mark.asyncio
async def test_recognize_without_image(client):
    resp = await client.post("/api/ingredients/recognize")
    assert resp.status_code == 400
    assert resp.json()["error"] == "No image file provided"


@pytest.mark.asyncio
async def test_recognize_rejects_non_images(client, fake_ai):
    wrong_type = await client.post(
        "/api/ingredients/recognize",
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )
    assert wrong_type.status_code == 400

    corrupt = await client.post(
        "/api/ingredients/recognize",
        files={"image": ("fake.jpg", b"not really a jpeg", "image/jpeg")},
    )
    assert corrupt.status_code == 400
    assert fake_ai.images == []


@pytest.mark.asyncio
async def test_recognize_rejects_oversized_upload(client, monkeypatch):
    from recipegen.core.config import get_settings

    monkeypatch.setattr(get_settings(), "max_upload_bytes", 100)
    resp = await client.post(
        "/api/ingredients/recognize",
        files={"image": ("big.jpg", _jpeg((200, 200)), "image/jpeg")},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "IMAGE_TOO_LARGE"


@pytest.mark.asyncio
async def test_suggestions(client, db_session):
    db_session.add_all(
        [
            Recipe(title="A", ingredients=[RecipeIngredient(name="Tomato"), RecipeIngredient(name="tomato paste")]),
            Recipe(title="B", ingredients=[RecipeIngredient(name="tomato"), RecipeIngredient(name="basil")]),
        ]
    )
    db_session.commit()

    short = await client.get("/api/ingredients/suggestions", params={"q": "t"})
    assert short.json() == {"suggestions": []}

    resp = await client.get("/api/ingredients/suggestions", params={"q": "TOM"})
    assert resp.json() == {"suggestions": ["tomato", "tomato paste"]}


def test_cooking_socket_broadcasts_tips(test_app):
    with TestClient(test_app) as http:
        with http.websocket_connect("/ws/cooking") as first, http.websocket_connect("/ws/cooking") as second:
            first.send_json({"event": "cooking-assistance", "recipe_id": 7})
            tip = first.receive_json()
            assert tip["event"] == "cooking-tip"
            assert tip["recipe_id"] == 7
            assert second.receive_json() == tip


@pytest.mark.asyncio
async def test_suggestions_treat_wildcards_literally(client, db_session):
    db_session.add(
        Recipe(title="C", ingredients=[RecipeIngredient(name="sea_salt"), RecipeIngredient(name="sea bass")])
    )
    db_session.commit()

    resp = await client.get("/api/ingredients/suggestions", params={"q": "a_s"})
    assert resp.json() == {"suggestions": ["sea_salt"]}

    none = await client.get("/api/ingredients/suggestions", params={"q": "%%"})
    assert none.json() == {"suggestions": []}
