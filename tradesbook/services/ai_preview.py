"""
OpenAI room analysis and TV placement previews.

Chat completions (vision, JSON mode) analyse the customer's room photo; the
image endpoint renders a preview of the mounted TV.
"""

import json
import logging
import re
from typing import Optional

import httpx

from ..config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_IMAGE_MODEL,
    OPENAI_MODEL,
    OPENAI_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")
MAX_IMAGE_BASE64_LENGTH = 14 * 1024 * 1024  # ~10MB of image data

ROOM_ANALYSIS_PROMPT = (
    "Analyze this room for TV installation. Provide recommendations about wall suitability, "
    "optimal TV size, potential installation challenges, and any special installation notes. "
    "Respond in JSON format with fields: wallSuitability, recommendedTVSize, "
    "potentialChallenges (array), installationNotes."
)

DEFAULT_SCENE = (
    "Modern living room with TV mounted at optimal viewing height, showing clean cable "
    "management and professional installation."
)


class AIPreviewError(Exception):
    """Raised when the AI provider fails or returns something unusable"""


class AINotConfiguredError(AIPreviewError):
    pass


def is_configured() -> bool:
    return bool(OPENAI_API_KEY)


def strip_data_url(image_base64: str) -> str:
    """Accept raw base64 or a data URL"""
    return DATA_URL_PREFIX.sub("", image_base64.strip())


async def _post(path: str, payload: dict) -> dict:
    """POST to the OpenAI API and return the decoded JSON body"""
    if not is_configured():
        raise AINotConfiguredError("OPENAI_API_KEY not set")

    try:
        async with httpx.AsyncClient(timeout=OPENAI_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                f"{OPENAI_BASE_URL}{path}",
                headers={
                    "Authorization": f"Bearer {OPENAI_API_KEY}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
    except httpx.HTTPError as e:
        raise AIPreviewError(f"OpenAI request failed: {e}") from e

    if resp.status_code != 200:
        logger.error(f"❌ OpenAI {path} returned {resp.status_code}: {resp.text[:300]}")
        raise AIPreviewError(f"OpenAI returned status {resp.status_code}")
    return resp.json()


async def _chat_json(system: str, text: str, image_base64: str, max_tokens: int) -> dict:
    payload = {
        "model": OPENAI_MODEL,
        "messages": [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": text},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/jpeg;base64,{strip_data_url(image_base64)}"},
                    },
                ],
            },
        ],
        "response_format": {"type": "json_object"},
        "max_tokens": max_tokens,
    }
    data = await _post("/chat/completions", payload)
    try:
        content = data["choices"][0]["message"]["content"] or "{}"
        parsed = json.loads(content)
    except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
        raise AIPreviewError(f"Unreadable analysis from OpenAI: {e}") from e
    if not isinstance(parsed, dict):
        raise AIPreviewError("OpenAI analysis was not a JSON object")
    return parsed


async def analyze_room(image_base64: str) -> dict:
    """Wall suitability, recommended size, challenges and notes for a room photo"""
    analysis = await _chat_json(
        "You are a professional TV installation expert. Analyze room photos to provide "
        "installation recommendations and identify potential challenges.",
        ROOM_ANALYSIS_PROMPT,
        image_base64,
        max_tokens=800,
    )
    challenges = analysis.get("potentialChallenges") or []
    if isinstance(challenges, str):
        challenges = [challenges]
    return {
        "wallSuitability": analysis.get("wallSuitability"),
        "recommendedTVSize": analysis.get("recommendedTVSize"),
        "potentialChallenges": [str(c) for c in challenges],
        "installationNotes": analysis.get("installationNotes"),
    }


def build_image_prompt(tv_size: int, mount_type: str, analysis: dict) -> str:
    scene = analysis.get("imagePrompt") or DEFAULT_SCENE
    return (
        f'Photo-realistic interior room image showing a {tv_size}" flat screen TV mounted on the wall '
        f"with a {mount_type} mount. {scene} The TV should be prominently displayed on the wall, "
        "appearing naturally integrated into the space. High quality, realistic lighting, clean and "
        "modern aesthetic."
    )


def describe_placement(tv_size: int, mount_type: str, analysis: dict) -> str:
    parts = [f'{tv_size}" TV mounted using {mount_type} mount.']
    if analysis.get("wallLocation"):
        parts.append(f"Recommended placement: {analysis['wallLocation']}")
    if analysis.get("optimalHeight"):
        parts.append(f"Optimal height: {analysis['optimalHeight']}")
    return " ".join(parts)


async def generate_image(prompt: str) -> str:
    data = await _post(
        "/images/generations",
        {
            "model": OPENAI_IMAGE_MODEL,
            "prompt": prompt,
            "n": 1,
            "size": "1024x1024",
            "quality": "standard",
        },
    )
    try:
        return data["data"][0]["url"]
    except (KeyError, IndexError, TypeError) as e:
        raise AIPreviewError("OpenAI returned no image") from e


async def generate_tv_placement(
    image_base64: str, tv_size: int, mount_type: str, wall_type: str
) -> dict:
    """
    Analyse the room, then render the TV in place.

    Raises:
        AIPreviewError: when the analysis step fails. A failed image
            generation is reported in the result instead.
    """
    analysis = await _chat_json(
        "You are an expert TV installation consultant. Analyze room photos to determine the best "
        "TV placement. Respond with JSON containing placement recommendations.",
        (
            f'Analyze this room photo for TV installation. The customer wants to mount a {tv_size}" TV '
            f"with a {mount_type} mount on a {wall_type} wall.\n\n"
            "Please provide:\n1. The best wall location for the TV\n2. Optimal height from floor\n"
            "3. Any furniture that might need to be moved\n4. Viewing angle considerations\n"
            "5. A detailed description for image generation\n\n"
            "Respond in JSON format with these fields: wallLocation, optimalHeight, furnitureNotes, "
            "viewingNotes, imagePrompt"
        ),
        image_base64,
        max_tokens=1000,
    )

    try:
        image_url: Optional[str] = await generate_image(build_image_prompt(tv_size, mount_type, analysis))
    except AIPreviewError as e:
        logger.warning(f"⚠️ TV placement image generation failed: {e}")
        return {"success": False, "error": f"Failed to generate TV placement preview: {e}", "analysis": analysis}

    logger.info(f"✅ TV placement preview generated ({tv_size}\" {mount_type})")
    return {
        "success": True,
        "imageUrl": image_url,
        "description": describe_placement(tv_size, mount_type, analysis),
        "analysis": analysis,
    }
