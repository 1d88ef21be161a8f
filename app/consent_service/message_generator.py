"""
Consent request message generation.

Turns a driver's consent request into a short, friendly message for
the passenger using Gemini. Falls back to a fixed template whenever
the LLM is unavailable or answers with nothing usable.
"""

import time
from typing import Callable, Optional

import mlflow

from app.common.mlflow_control import mlflow_context, mlflow_safe
from app.core.config import settings
from app.driver_service.schemas import DriverProfile
from app.utils.logger import get_logger

logger = get_logger(__name__)

CATEGORY_LABELS = {
    "music": "music preferences",
    "communication": "communication preferences",
    "safety": "safety preferences",
    "comfort": "comfort preferences",
    "special_needs": "accessibility and special needs",
    "trip": "trip preferences",
    "access_policy": "privacy settings",
    "emergency_contact": "emergency contacts",
    "location_history": "location history",
}

MIN_MESSAGE_LENGTH = 20


# ==================================================
# Lazy Gemini loader
# ==================================================
def _load_gemini():
    """
    Load a Gemini client, or (None, None) when it cannot be used.
    """
    if settings.ENV == "test":
        return None, None

    if not settings.GEMINI_API_KEY:
        logger.warning("Gemini API key missing")
        return None, None

    try:
        from google import genai
        from google.genai.types import GenerateContentConfig

        return genai.Client(api_key=settings.GEMINI_API_KEY), GenerateContentConfig

    except Exception as exc:
        logger.warning("Gemini unavailable: %s", exc)
        return None, None


def gemini_generate_text(prompt: str) -> str:
    """
    Generate text for a prompt with Gemini.

    Raises:
        RuntimeError: If Gemini is unavailable or returns no text.
    """
    client, GenerateContentConfig = _load_gemini()
    if client is None:
        raise RuntimeError("Text generation unavailable")

    response = client.models.generate_content(
        model=settings.GEMINI_MODEL,
        contents=prompt,
        config=GenerateContentConfig(
            temperature=0.7,
            max_output_tokens=300,
        ),
    )

    text = _extract_text(response)
    if not text:
        raise RuntimeError("Empty Gemini response")
    return text


def _extract_text(response) -> Optional[str]:
    """
    Extract text content from a Gemini response object.

    Uses the ``text`` shortcut when present, otherwise joins the parts
    of the first candidate.
    """
    text = getattr(response, "text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()

    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None)
    if not isinstance(parts, list):
        return None

    collected = [
        p.text.strip()
        for p in parts
        if isinstance(getattr(p, "text", None), str) and p.text.strip()
    ]
    return " ".join(collected) if collected else None


def build_prompt(driver: DriverProfile, category: str, reason: Optional[str]) -> str:
    label = CATEGORY_LABELS.get(category, category)
    return f"""
Generate a polite, personalized consent request message.

Driver: {driver.name or "Your driver"}
Rating: {driver.rating:.1f} stars
Total Rides: {driver.total_rides}
Verification: {driver.verification_level}

Requesting access to: {label}
Reason: {reason or "To provide better service"}

Write a short, friendly message (2-3 sentences) that introduces the driver,
explains what they are requesting, and makes clear it is optional and can be
revoked at any time. Keep it conversational and respectful.
"""


def fallback_message(driver: DriverProfile, category: str, reason: Optional[str]) -> str:
    label = CATEGORY_LABELS.get(category, category)
    name = driver.name or "Your driver"
    because = f" {reason.strip().rstrip('.')}." if reason and reason.strip() else ""
    return (
        f"{name} ({driver.rating:.1f} stars, {driver.total_rides} rides) "
        f"would like to see your {label}.{because} "
        "Sharing is optional and you can revoke access at any time."
    )


class ConsentMessageGenerator:
    """
    Writes the passenger-facing text of a consent request.

    Args:
        generate_text: ``prompt -> str`` collaborator; Gemini by default.
    """

    def __init__(self, generate_text: Callable[[str], str] = gemini_generate_text):
        self._generate_text = generate_text

    def generate(
        self,
        driver: DriverProfile,
        category: str,
        reason: Optional[str] = None,
    ) -> str:
        start_time = time.time()

        with mlflow_context(run_name="consent_request_message"):
            mlflow_safe(mlflow.set_tag, "service", "consent_negotiation")
            mlflow_safe(mlflow.set_tag, "category", category)

            try:
                message = self._generate_text(build_prompt(driver, category, reason))
            except Exception:
                logger.warning(
                    "Consent message generation failed, using template",
                    extra={"driver_id": driver.driver_id, "category": category},
                )
                message = None

            if not message or len(message.strip()) < MIN_MESSAGE_LENGTH:
                mlflow_safe(mlflow.set_tag, "fallback", "template")
                message = fallback_message(driver, category, reason)

            mlflow_safe(mlflow.log_metric, "latency_sec", time.time() - start_time)

        return message.strip()
