"""
Gemini model manager - one shared model instance per process.

Supports two backends:
  1. Vertex AI SDK (deployed) - uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev) - uses GOOGLE_API_KEY

Grouping and recommendations both go through call_llm() in retry.py, which
picks the model up from here.
"""

from __future__ import annotations

import os
from functools import lru_cache

from rabbithole.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)

# Which backend initialized, so per-instruction models reuse it
_backend: str | None = None  # "vertexai" or "genai"

_DISABLED_VALUES = {"0", "false", "no", "off"}


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


def is_llm_configured() -> bool:
    """
    True when grouping and recommendations may call the model.

    RABBITHOLE_USE_LLM switches the feature off; otherwise an API key or a
    cloud project must be present. Read at call time so tests and .env files
    loaded late are honoured.
    """
    if os.getenv("RABBITHOLE_USE_LLM", "true").strip().lower() in _DISABLED_VALUES:
        return False
    return bool(os.getenv("GOOGLE_API_KEY") or os.getenv("GOOGLE_CLOUD_PROJECT"))


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model instance (no system instruction).

    Tries Vertex AI first when a cloud project is set, then falls back to
    google-generativeai with GOOGLE_API_KEY.

    Raises:
        GeminiInitializationError: If neither backend can be initialized
    """
    global _backend
    # Read env vars fresh (settings may predate load_dotenv)
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION", "") or GEMINI_LOCATION or "us-central1"

    if project:
        try:
            import vertexai
            from vertexai.generative_models import GenerativeModel

            vertexai.init(project=project, location=location)
            model = GenerativeModel(GEMINI_MODEL)
            _backend = "vertexai"

            logger.info(
                "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
                project,
                location,
                GEMINI_MODEL,
            )
            return model

        except ImportError:
            logger.info("Vertex AI SDK not installed, trying google-generativeai fallback")

    try:
        import google.generativeai as genai

        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise GeminiInitializationError(
                "Neither vertexai nor GOOGLE_API_KEY available. "
                "Set GOOGLE_CLOUD_PROJECT or GOOGLE_API_KEY."
            )

        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(GEMINI_MODEL)
        _backend = "genai"

        logger.info("Initialized Gemini model (google-generativeai): model=%s", GEMINI_MODEL)
        return model

    except ImportError as e:
        raise GeminiInitializationError(
            "No Gemini SDK available. Install google-cloud-aiplatform or google-generativeai."
        ) from e
    except GeminiInitializationError:
        raise
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e


def get_gemini_model_with_options(system_instruction: str | None = None) -> object:
    """Create a model bound to a system instruction.

    System instructions are per-model-instance in the Gemini API, so a fresh
    GenerativeModel is built whenever one is given; otherwise the cached
    singleton is returned.
    """
    if system_instruction is None:
        return get_gemini_model()

    # Initializes the backend as a side effect
    get_gemini_model()

    if _backend == "vertexai":
        from vertexai.generative_models import GenerativeModel

        return GenerativeModel(GEMINI_MODEL, system_instruction=system_instruction)

    import google.generativeai as genai

    return genai.GenerativeModel(GEMINI_MODEL, system_instruction=system_instruction)
