from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import func
from sqlmodel import Session, select

from recipegen.core.config import get_settings
from recipegen.core.database import get_session
from recipegen.core.errors import ValidationFailed
from recipegen.models.recipes import RecipeIngredient
from recipegen.services.ai_gateway import AIGateway, get_ai_gateway
from recipegen.utils.images import normalize_image
from recipegen.utils.validators import LIKE_ESCAPE, escape_like

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ingredients", tags=["ingredients"])

MIN_SUGGESTION_QUERY = 2
MAX_SUGGESTIONS = 10


@router.post("/recognize")
def recognize_ingredients(
    image: Optional[UploadFile] = File(default=None),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    if image is None:
        raise ValidationFailed("No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise ValidationFailed("Only image files are allowed", code="INVALID_FILE_TYPE")

    settings = get_settings()
    # limit + 1 bytes is enough to detect an oversized upload
    data = image.file.read(settings.max_upload_bytes + 1)
    jpeg = normalize_image(
        data,
        max_side=settings.image_max_side,
        quality=settings.image_jpeg_quality,
        max_bytes=settings.max_upload_bytes,
    )

    ingredients = gateway.recognize_ingredients(jpeg)
    logger.info("Recognized %d ingredients from %s", len(ingredients), image.filename or "upload")
    return {"ingredients": ingredients, "message": f"Recognized {len(ingredients)} ingredients"}


@router.get("/suggestions")
def ingredient_suggestions(
    q: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    query = (q or "").strip().lower()
    if len(query) < MIN_SUGGESTION_QUERY:
        return {"suggestions": []}

    name = func.lower(RecipeIngredient.name)
    stmt = (
        select(name)
        .where(name.like(f"%{escape_like(query)}%", escape=LIKE_ESCAPE))
        .distinct()
        .order_by(name)
        .limit(MAX_SUGGESTIONS)
    )
    rows = session.exec(stmt).all()
    return {"suggestions": list(rows)}
