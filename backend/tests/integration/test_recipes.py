from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from recipegen.core.database import get_session
from recipegen.core.errors import UpstreamError
from recipegen.models.recipes import Difficulty, Recipe, RecipeIngredient, RecipeInstruction
from recipegen.utils.dates import utc_now


def _recipe(title, prep=10, cook=10, tags=(), cuisine="Italian", difficulty=Difficulty.easy, age_minutes=0, **kw):
    return Recipe(
        title=title,
        description=kw.pop("description", f"{title} description"),
        cuisine=cuisine,
        difficulty=difficulty,
        prep_time=prep,
        cook_time=cook,
        dietary_tags=list(tags),
        nutrition_info={"calories": 300, "protein": 10, "carbs": 40, "fat": 8},
        created_at=utc_now() - timedelta(minutes=age_minutes),
        **kw,
    )


@pytest.fixture
def recipes(db_session):
    rows = [
        _recipe("Quick Salad", prep=10, cook=0, tags=["vegan", "vegetarian"], age_minutes=30),
        _recipe("Slow Ragu", prep=20, cook=120, tags=["dairy-free"], difficulty=Difficulty.hard, age_minutes=20),
        _recipe("Pad Thai", prep=15, cook=15, tags=["vegetarian"], cuisine="Thai", age_minutes=10,
                description="Rice noodles with TOFU"),
    ]
    db_session.add_all(rows)
    db_session.commit()
    for r in rows:
        db_session.refresh(r)
    return {r.title: r.id for r in rows}


@pytest.mark.asyncio
async def test_list_orders_newest_first(client, recipes):
    resp = await client.get("/api/recipes")
    assert resp.status_code == 200
    titles = [r["title"] for r in resp.json()["recipes"]]
    assert titles == ["Pad Thai", "Slow Ragu", "Quick Salad"]
    assert resp.json()["recipes"][0]["avg_rating"] == 0
    assert resp.json()["recipes"][0]["rating_count"] == 0


@pytest.mark.asyncio
async def test_list_max_time_filter(client, recipes):
    resp = await client.get("/api/recipes", params={"max_time": 30})
    items = resp.json()["recipes"]
    assert {r["title"] for r in items} == {"Quick Salad", "Pad Thai"}
    assert all(r["prep_time"] + r["cook_time"] <= 30 for r in items)


@pytest.mark.asyncio
async def test_list_filters_combine(client, recipes):
    by_search = await client.get("/api/recipes", params={"search": "tofu"})
    assert [r["title"] for r in by_search.json()["recipes"]] == ["Pad Thai"]

    by_cuisine = await client.get("/api/recipes", params={"cuisine": "italian"})
    assert {r["title"] for r in by_cuisine.json()["recipes"]} == {"Quick Salad", "Slow Ragu"}

    by_tag = await client.get("/api/recipes", params={"dietary_preference": "vegetarian", "cuisine": "Italian"})
    assert [r["title"] for r in by_tag.json()["recipes"]] == ["Quick Salad"]

    by_difficulty = await client.get("/api/recipes", params={"difficulty": "hard"})
    assert [r["title"] for r in by_difficulty.json()["recipes"]] == ["Slow Ragu"]


@pytest.mark.asyncio
async def test_tag_filter_matches_whole_tags(client, recipes):
    resp = await client.get("/api/recipes", params={"dietary_preference": "vegan"})
    assert [r["title"] for r in resp.json()["recipes"]] == ["Quick Salad"]


@pytest.mark.asyncio
async def test_tag_filter_matches_non_ascii_tags(client, db_session, recipes):
    db_session.add(_recipe("Ratatouille", tags=["végétarien"], cuisine="French"))
    db_session.commit()

    resp = await client.get("/api/recipes", params={"dietary_preference": "Végétarien"})
    assert [r["title"] for r in resp.json()["recipes"]] == ["Ratatouille"]


@pytest.mark.asyncio
async def test_wildcards_in_filters_match_literally(client, db_session, recipes):
    db_session.add(_recipe("100% Rye Bread", tags=["low_fat"]))
    db_session.commit()

    percent = await client.get("/api/recipes", params={"search": "%"})
    assert [r["title"] for r in percent.json()["recipes"]] == ["100% Rye Bread"]

    underscore = await client.get("/api/recipes", params={"search": "_"})
    assert underscore.json()["recipes"] == []

    tag_wildcard = await client.get("/api/recipes", params={"dietary_preference": "%"})
    assert tag_wildcard.json()["recipes"] == []

    tag = await client.get("/api/recipes", params={"dietary_preference": "low_fat"})
    assert [r["title"] for r in tag.json()["recipes"]] == ["100% Rye Bread"]
    assert (await client.get("/api/recipes", params={"dietary_preference": "lowxfat"})).json()["recipes"] == []


@pytest.mark.asyncio
async def test_list_pagination(client, recipes):
    page = await client.get("/api/recipes", params={"limit": 1, "offset": 1})
    assert [r["title"] for r in page.json()["recipes"]] == ["Slow Ragu"]

    too_big = await client.get("/api/recipes", params={"limit": 500})
    assert too_big.status_code == 400


@pytest.mark.asyncio
async def test_get_recipe_detail_and_404(client, db_session):
    recipe = _recipe("Soup")
    recipe.ingredients = [RecipeIngredient(name="leek", quantity=2, unit="piece")]
    recipe.instructions = [
        RecipeInstruction(step_number=2, instruction="Simmer."),
        RecipeInstruction(step_number=1, instruction="Chop."),
    ]
    db_session.add(recipe)
    db_session.commit()
    db_session.refresh(recipe)

    resp = await client.get(f"/api/recipes/{recipe.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ingredients"][0]["name"] == "leek"
    assert [s["step_number"] for s in body["instructions"]] == [1, 2]

    missing = await client.get("/api/recipes/99999")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Recipe not found"


@pytest.mark.asyncio
async def test_generate_persists_recipe(client, db_session, fake_ai):
    resp = await client.post(
        "/api/recipes/generate",
        json={"ingredients": ["pasta", "tomato"], "cuisine": "Italian", "servings": 2, "cooking_time": 30},
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["saved_to_db"] is True
    assert data["message"] == "Recipe generated successfully"

    recipe = data["recipe"]
    assert recipe["id"] > 0
    assert recipe["title"] == "Garlic Tomato Pasta"
    assert recipe["servings"] == 2
    assert recipe["cuisine"] == "Italian"
    assert recipe["dietary_tags"] == ["vegetarian"]
    quantities = {i["name"]: i["quantity"] for i in recipe["ingredients"]}
    assert quantities == {"pasta": 200.0, "tomato": 2.0, "garlic": 1.5}
    assert [s["step_number"] for s in recipe["instructions"]] == [1, 2]

    assert "Ingredients available: pasta, tomato" in fake_ai.prompts[0]
    assert "Maximum cooking time: 30 minutes" in fake_ai.prompts[0]

    stored = (await client.get(f"/api/recipes/{recipe['id']}")).json()
    assert stored["title"] == "Garlic Tomato Pasta"
    assert len(stored["ingredients"]) == 3


@pytest.mark.asyncio
async def test_generate_requires_ingredients(client, fake_ai):
    resp = await client.post("/api/recipes/generate", json={"ingredients": []})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Ingredients are required"
    assert fake_ai.prompts == []


@pytest.mark.asyncio
async def test_generate_uses_stored_preferences(client, auth_headers, fake_ai):
    await client.put(
        "/api/auth/preferences",
        json={"dietary_preferences": ["vegan"], "allergies": ["sesame"]},
        headers=auth_headers,
    )
    resp = await client.post("/api/recipes/generate", json={"ingredients": ["tofu"]}, headers=auth_headers)
    assert resp.status_code == 201
    assert "Dietary preferences: vegan" in fake_ai.prompts[0]
    assert "Allergies to avoid: sesame" in fake_ai.prompts[0]


@pytest.mark.asyncio
async def test_generate_parse_error_persists_nothing(client, db_session, fake_ai):
    fake_ai.recipe = None
    resp = await client.post("/api/recipes/generate", json={"ingredients": ["rice"]})
    assert resp.status_code == 500
    assert resp.json()["code"] == "PARSE_ERROR"
    assert db_session.exec(select(Recipe)).all() == []


@pytest.mark.asyncio
async def test_generate_missing_title_is_parse_error(client, db_session, fake_ai):
    fake_ai.recipe = {"description": "no title here", "ingredients": ["rice"]}
    resp = await client.post("/api/recipes/generate", json={"ingredients": ["rice"]})
    assert resp.status_code == 500
    assert resp.json()["code"] == "PARSE_ERROR"
    assert db_session.exec(select(Recipe)).all() == []


@pytest.mark.asyncio
async def test_generate_surfaces_ai_error_code(client, fake_ai):
    fake_ai.recipe_error = UpstreamError("Failed to generate recipe with AI", code="RATE_LIMIT")
    resp = await client.post("/api/recipes/generate", json={"ingredients": ["rice"]})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to generate recipe with AI", "code": "RATE_LIMIT"}


@pytest.mark.asyncio
async def test_generate_returns_recipe_when_save_fails(client, test_app, fake_ai):
    class BrokenSession(Session):
        def commit(self):
            raise OperationalError("INSERT INTO recipes", {}, Exception("database is down"))

    def _broken_session():
        from recipegen.core import database

        with BrokenSession(database.engine) as session:
            yield session

    test_app.dependency_overrides[get_session] = _broken_session
    resp = await client.post("/api/recipes/generate", json={"ingredients": ["pasta"]})
    assert resp.status_code == 201
    data = resp.json()
    assert data["saved_to_db"] is False
    assert data["recipe"]["id"] < 0
    assert data["recipe"]["title"] == "Garlic Tomato Pasta"
    assert len(data["recipe"]["ingredients"]) == 3


@pytest.mark.asyncio
async def test_rating_requires_auth_and_valid_range(client, auth_headers, recipes):
    rid = recipes["Pad Thai"]

    anon = await client.post(f"/api/recipes/{rid}/rate", json={"rating": 4})
    assert anon.status_code == 401

    too_high = await client.post(f"/api/recipes/{rid}/rate", json={"rating": 6}, headers=auth_headers)
    assert too_high.status_code == 400

    ok = await client.post(f"/api/recipes/{rid}/rate", json={"rating": 3}, headers=auth_headers)
    assert ok.status_code == 200
    assert ok.json()["avg_rating"] == 3
    assert ok.json()["rating_count"] == 1

    missing = await client.post("/api/recipes/99999/rate", json={"rating": 3}, headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_rating_again_updates_and_averages(client, register, recipes):
    rid = recipes["Pad Thai"]
    first = await register(client, email="one@example.com")
    second = await register(client, email="two@example.com")
    h1 = {"Authorization": f"Bearer {first['token']}"}
    h2 = {"Authorization": f"Bearer {second['token']}"}

    await client.post(f"/api/recipes/{rid}/rate", json={"rating": 2}, headers=h1)
    await client.post(f"/api/recipes/{rid}/rate", json={"rating": 5}, headers=h1)
    resp = await client.post(f"/api/recipes/{rid}/rate", json={"rating": 4}, headers=h2)
    assert resp.json()["rating_count"] == 2
    assert resp.json()["avg_rating"] == 4.5

    listed = (await client.get("/api/recipes", params={"search": "pad"})).json()["recipes"][0]
    assert listed["avg_rating"] == 4.5
    assert listed["rating_count"] == 2


@pytest.mark.asyncio
async def test_favorite_toggles(client, auth_headers, recipes):
    rid = recipes["Quick Salad"]
    on = await client.post(f"/api/recipes/{rid}/favorite", headers=auth_headers)
    assert on.json()["favorited"] is True

    favorites = await client.get("/api/recipes/favorites", headers=auth_headers)
    assert [r["title"] for r in favorites.json()["recipes"]] == ["Quick Salad"]

    off = await client.post(f"/api/recipes/{rid}/favorite", headers=auth_headers)
    assert off.json()["favorited"] is False
    favorites = await client.get("/api/recipes/favorites", headers=auth_headers)
    assert favorites.json()["recipes"] == []
