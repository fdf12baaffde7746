"""LLM provider calls for paid AI features."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from config import settings
from services.exceptions import LLMProviderError

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "Velora Assistant"
CHAT_CONTEXT_MESSAGES = 3


def get_llm_client(api_key: Optional[str] = None) -> Optional[AsyncOpenAI]:
    """Get OpenAI client, handling placeholders."""
    key = api_key if api_key is not None else settings.OPENAI_API_KEY
    if not key or "your_" in key or key == "test-key":
        return None
    return AsyncOpenAI(api_key=key, timeout=settings.LLM_TIMEOUT_SECONDS)


async def _complete(system_prompt: str, user_prompt: str, *, json_mode: bool = False) -> str:
    client = get_llm_client()
    if client is None:
        logger.warning("Using MOCK LLM response; OPENAI_API_KEY is not configured.")
        if json_mode:
            return json.dumps({"title": "Generated Recipe", "summary": user_prompt[:200]})
        return f"{ASSISTANT_NAME} is not connected to a model right now."

    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    try:
        response = await client.chat.completions.create(
            model=settings.LLM_MODEL,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )
    except OpenAIError as exc:
        raise LLMProviderError(detail=str(exc)) from exc

    text = (response.choices[0].message.content or "").strip() if response.choices else ""
    if not text:
        raise LLMProviderError(detail="empty completion")
    return text


async def generate_chat_reply(
    messages: List[Dict[str, str]],
    dietary_preferences: Optional[str] = None,
) -> str:
    recent = messages[-CHAT_CONTEXT_MESSAGES:]
    context = "\n".join(f"{m.get('role', 'user')}: {m.get('text', '')}" for m in recent)
    system_prompt = (
        f'You are "{ASSISTANT_NAME}", an expert chef and cooking advisor. '
        "Respond helpfully to cooking questions, provide tips, suggest substitutions, "
        "and offer technique advice. Keep responses conversational."
    )
    user_prompt = (
        f"Context from conversation:\n{context}\n\n"
        f"User's dietary preferences: {dietary_preferences or 'none'}"
    )
    return await _complete(system_prompt, user_prompt)


def parse_recipe(text: str) -> Dict[str, Any]:
    """Parse model output as recipe JSON, wrapping free text when it is not JSON."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        data = None
    if isinstance(data, dict):
        return data
    return {
        "title": "Generated Recipe",
        "summary": text,
        "difficulty": "medium",
        "cuisine_type": "Various",
    }


async def generate_recipe(
    ingredients: List[str],
    dietary_preferences: Optional[str] = None,
) -> Dict[str, Any]:
    system_prompt = (
        f'You are "{ASSISTANT_NAME}", an expert chef AI. Respond ONLY with a JSON object with keys '
        "title, prep_time, cook_time, servings, difficulty, cuisine_type, ingredients "
        "(name, quantity, unit), steps (step_number, text, estimated_time), nutrition "
        "(calories, protein, carbs, fat) and summary."
    )
    user_prompt = (
        f"Available ingredients: {', '.join(ingredients) if ingredients else 'not specified'}\n"
        f"Dietary preferences: {dietary_preferences or 'none'}"
    )
    return parse_recipe(await _complete(system_prompt, user_prompt, json_mode=True))
