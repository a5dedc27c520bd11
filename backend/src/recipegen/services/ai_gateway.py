from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from fastapi import Request
from openai import OpenAI

from recipegen.core.config import Settings, get_settings
from recipegen.core.errors import UpstreamError
from recipegen.utils.llm import extract_json_object, parse_ingredient_list

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_RECIPE = (
    "You are a professional chef and nutritionist. Generate detailed, accurate recipes. "
    "Always return valid JSON only."
)

VISION_PROMPT = (
    "Identify all the food ingredients visible in this image. List them as a JSON array of "
    "objects with 'name' and 'confidence' fields. Only include items you can clearly identify "
    "as food ingredients. Example: "
    '[{"name": "tomato", "confidence": 0.9}, {"name": "onion", "confidence": 0.85}]'
)

RECIPE_TEMPLATE = """Generate a detailed recipe with the following requirements:
- Ingredients available: {ingredients}
- Dietary preferences: {dietary_preferences}
- Cuisine type: {cuisine}
- Meal type: {meal_type}
- Servings: {servings}
- Maximum cooking time: {cooking_time} minutes
- Allergies to avoid: {allergies}

IMPORTANT: You must return ONLY valid JSON. Do not include any text before or after the JSON object.

Please provide:
1. Recipe title
2. Brief description
3. Detailed ingredients list with quantities
4. Step-by-step cooking instructions
5. Nutritional information per serving (calories, protein, carbs, fat)
6. Difficulty level (easy, medium, hard)
7. Prep time and cook time in minutes
8. Dietary tags

Format as JSON with this structure:
{{
  "title": "...",
  "description": "...",
  "ingredients": [{{"name": "...", "quantity": "...", "unit": "..."}}],
  "instructions": [{{"step": 1, "instruction": "..."}}],
  "nutrition": {{"calories": 0, "protein": 0, "carbs": 0, "fat": 0}},
  "difficulty": "...",
  "prep_time": 0,
  "cook_time": 0,
  "dietary_tags": ["..."]
}}"""

ERROR_MESSAGES = {
    "API_KEY_MISSING": "OpenAI API key not configured. Set OPENAI_API_KEY and restart the server.",
    "INVALID_API_KEY": "Invalid API key. Check OPENAI_API_KEY and restart the server.",
    "RATE_LIMIT": "Rate limit exceeded. Please wait a moment and try again.",
    "INSUFFICIENT_QUOTA": "Insufficient credits in the OpenAI account.",
    "MODEL_NOT_FOUND": "The requested model is not available for this account.",
    "NETWORK_ERROR": "Network error while contacting the AI service.",
    "UPSTREAM_ERROR": "The AI service returned an error.",
}


# phrases the API uses when a model lacks a requested feature
_MODEL_REJECTION_MARKERS = (
    "not supported with this model",
    "does not support",
    "model_not_found",
    "does not exist",
)


def _join(values: Optional[Sequence[str]], default: str) -> str:
    items = [v for v in (values or []) if v]
    return ", ".join(items) if items else default


def build_recipe_prompt(
    ingredients: Sequence[str],
    dietary_preferences: Optional[Sequence[str]] = None,
    cuisine: Optional[str] = None,
    meal_type: Optional[str] = None,
    servings: Optional[int] = None,
    cooking_time: Optional[int] = None,
    allergies: Optional[Sequence[str]] = None,
) -> str:
    return RECIPE_TEMPLATE.format(
        ingredients=_join(ingredients, "any"),
        dietary_preferences=_join(dietary_preferences, "none"),
        cuisine=cuisine or "any",
        meal_type=meal_type or "dinner",
        servings=servings or 4,
        cooking_time=cooking_time or 60,
        allergies=_join(allergies, "none"),
    )


def classify_openai_error(exc: Exception) -> UpstreamError:
    """Map an OpenAI SDK exception onto an UpstreamError with a stable code."""
    if isinstance(exc, UpstreamError):
        return exc
    code = "UPSTREAM_ERROR"
    if isinstance(exc, openai.AuthenticationError):
        code = "INVALID_API_KEY"
    elif isinstance(exc, openai.RateLimitError):
        body_code = getattr(exc, "code", None)
        code = "INSUFFICIENT_QUOTA" if body_code == "insufficient_quota" or "quota" in str(exc).lower() else "RATE_LIMIT"
    elif isinstance(exc, openai.NotFoundError):
        code = "MODEL_NOT_FOUND"
    elif isinstance(exc, openai.APIConnectionError):
        # also covers APITimeoutError
        code = "NETWORK_ERROR"
    return UpstreamError(
        "Failed to generate recipe with AI" if code != "NETWORK_ERROR" else "AI service unreachable",
        code=code,
        details=ERROR_MESSAGES[code] + f" ({exc})",
    )


def model_rejected(exc: Exception, model: str) -> bool:
    """True when the error says the model itself cannot serve the request (missing, or no JSON mode)."""
    if isinstance(exc, openai.NotFoundError):
        return True
    if isinstance(exc, openai.BadRequestError):
        text = str(exc).lower()
        return model.lower() in text or any(marker in text for marker in _MODEL_REJECTION_MARKERS)
    return False


class AIGateway:
    """Process-wide handle on the hosted completion / vision models."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        self.settings = settings or get_settings()
        self._client = client if client is not None else self._build_client(self.settings)

    @staticmethod
    def _build_client(settings: Settings) -> Optional[OpenAI]:
        api_key = (settings.openai_api_key or "").strip()
        if len(api_key) < 10:
            logger.warning("OpenAI API key not configured - AI features disabled")
            return None
        return OpenAI(
            api_key=api_key,
            timeout=settings.openai_timeout,
            max_retries=settings.openai_max_retries,
        )

    @property
    def available(self) -> bool:
        return self._client is not None

    def _require_client(self) -> OpenAI:
        if self._client is None:
            raise UpstreamError(
                "OpenAI API key not configured",
                code="API_KEY_MISSING",
                details=ERROR_MESSAGES["API_KEY_MISSING"],
            )
        return self._client

    def _complete(self, model: str, messages: List[Dict[str, Any]], **kwargs: Any) -> str:
        client = self._require_client()
        completion = client.chat.completions.create(model=model, messages=messages, **kwargs)
        return (completion.choices[0].message.content or "").strip()

    def generate_recipe_json(self, prompt: str) -> Tuple[Dict[str, Any], str]:
        """Ask for a recipe; returns the decoded JSON object and the model that produced it.

        Falls back to the secondary model once when the primary one is unavailable.
        Raises ParseError when the reply holds no JSON object.
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT_RECIPE},
            {"role": "user", "content": prompt},
        ]
        options = {
            "temperature": self.settings.openai_temperature,
            "response_format": {"type": "json_object"},
        }
        model = self.settings.openai_primary_model
        try:
            logger.info("Calling OpenAI with model %s", model)
            text = self._complete(model, messages, **options)
        except openai.OpenAIError as exc:
            if not model_rejected(exc, model):
                raise classify_openai_error(exc) from exc
            logger.warning("Model %s unavailable (%s), falling back to %s", model, exc, self.settings.openai_fallback_model)
            model = self.settings.openai_fallback_model
            try:
                text = self._complete(model, messages, **options)
            except openai.OpenAIError as fallback_exc:
                raise classify_openai_error(fallback_exc) from fallback_exc

        logger.info("Recipe generated using %s", model)
        return extract_json_object(text), model

    def recognize_ingredients(self, jpeg_bytes: bytes) -> List[Dict[str, Any]]:
        encoded = base64.b64encode(jpeg_bytes).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": VISION_PROMPT},
                    {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
                ],
            }
        ]
        try:
            text = self._complete(self.settings.openai_vision_model, messages, max_tokens=500)
        except openai.OpenAIError as exc:
            raise classify_openai_error(exc) from exc
        return parse_ingredient_list(text)


def get_ai_gateway(request: Request) -> AIGateway:
    gateway = getattr(request.app.state, "ai_gateway", None)
    if gateway is None:
        gateway = AIGateway()
        request.app.state.ai_gateway = gateway
    return gateway
