"""Shared LLM call with retry logic.

Grouping and recommendations both call the model through call_llm(). Each
caller wraps it in its own try/except and decides its own fallback: grouping
degrades to "no group", recommendations to an empty list plus a message.

Transient Google API errors are converted to builtin exception types so the
tenacity policy can retry them without importing the SDK at module load.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from rabbithole.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from rabbithole.infrastructure.settings import GEMINI_MAX_TOKENS
from rabbithole.llm.gemini import get_gemini_model_with_options
from rabbithole.observability.logging import get_logger
from rabbithole.observability.telemetry import counter, time_block

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    system_instruction: str | None = None,
    temperature: float = 0.0,
    json_output: bool = True,
) -> str:
    """Call the model with retry on transient failures.

    Args:
        prompt: User message sent to the model.
        counter_prefix: Telemetry counter prefix ("grouping", "recommendations").
        system_instruction: Optional system instruction.
        temperature: Sampling temperature.
        json_output: Ask for an application/json response.

    Returns:
        The model's response text (may be empty).

    Raises:
        TimeoutError: On deadline exceeded (retried).
        ConnectionError: On service unavailable or internal error (retried).
        OSError: On resource exhausted / rate limited (retried).
        Exception: On other errors (not retried, caller handles).
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model_with_options(system_instruction=system_instruction)

    generation_config = {
        "temperature": temperature,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    counter(f"{counter_prefix}.llm_calls")
    try:
        with time_block(f"{counter_prefix}.llm_latency"):
            response = model.generate_content(prompt, generation_config=generation_config)
        return response.text or ""
    except DeadlineExceeded as e:
        counter(f"{counter_prefix}.timeout")
        logger.warning("LLM call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        counter(f"{counter_prefix}.service_unavailable")
        logger.warning("LLM service unavailable, will retry: %s", e)
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"{counter_prefix}.rate_limited")
        logger.warning("LLM rate limited (429), will retry: %s", e)
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        counter(f"{counter_prefix}.internal_error")
        logger.warning("LLM internal error (500), will retry: %s", e)
        raise ConnectionError(f"LLM internal error: {e}") from e
    except Exception as e:
        logger.error("LLM call failed: %s", e)
        raise
