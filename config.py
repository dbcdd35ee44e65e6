"""Shared configuration and utilities for rubber."""

import functools
import logging
import os
import re
import time

import httpx
from dotenv import load_dotenv
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from errors import (
    AIAuthError,
    AINetworkError,
    AIRequestError,
    AITimeoutError,
    RateLimitedError,
)

# ---------------------------------------------------------------------------
# Environment & logging (initialised once on first import)
# ---------------------------------------------------------------------------
load_dotenv()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.WARNING),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """Comma-separated list from the environment, or *default*."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
USE_MOCK: bool = os.getenv("USE_MOCK", "false").lower() == "true"
DEFAULT_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite")

# Timeouts (seconds)
GITHUB_TIMEOUT: int = _env_int("GITHUB_TIMEOUT", 30)
AI_TIMEOUT: int = _env_int("AI_TIMEOUT", 60)

# One attempt plus exactly one retry on transient AI failures
AI_MAX_ATTEMPTS: int = 2
AI_RETRY_DELAY: float = _env_float("AI_RETRY_DELAY", 2.0)
AI_MAX_OUTPUT_TOKENS: int = 1500

# Character budget for the diff portion of the AI prompt
MAX_DIFF_CHARS: int = _env_int("RUBBER_MAX_DIFF_CHARS", 60_000)

# Most recent PRs shown in list mode
PR_LIST_LIMIT: int = 10

# Pattern detector markers (plain substrings, case-sensitive)
DEBUG_MARKERS: tuple[str, ...] = _env_list(
    "RUBBER_DEBUG_MARKERS",
    (
        "println!",
        "eprintln!",
        "dbg!",
        "console.log",
        "print(",
        "System.out.println",
        "fmt.Println",
        "debugger",
        "pdb.set_trace",
        "breakpoint()",
    ),
)
UNWRAP_MARKERS: tuple[str, ...] = _env_list(
    "RUBBER_UNWRAP_MARKERS", ("unwrap()", ".expect(")
)
PANIC_MARKERS: tuple[str, ...] = _env_list(
    "RUBBER_PANIC_MARKERS",
    (
        "panic!",
        "unreachable!",
        "unimplemented!",
        "todo!()",
        "process.exit(",
        "sys.exit(",
        "os.Exit(",
        "abort()",
    ),
)

# GitHub owner / repository names
_NAME_PATTERN = re.compile(r"^[\w.-]+$")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_name(value: str, kind: str = "name") -> str:
    """Validate a GitHub owner or repository name.

    Returns *value* unchanged on success; raises ``ValueError`` otherwise.
    """
    if not _NAME_PATTERN.match(value):
        raise ValueError(
            f"Invalid {kind}: {value!r}. Only letters, digits, '-', '_' "
            f"and '.' are allowed."
        )
    return value


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------
def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable: tuple[type[Exception], ...] = (Exception,),
):
    """Decorator: retry a function with exponential back-off.

    *max_retries* is the total number of attempts.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    last_exc = exc
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Attempt %d/%d for %s failed: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries,
                            getattr(func, "__name__", repr(func)),
                            exc,
                            delay,
                        )
                        time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Cached API clients
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_gemini_client() -> genai.Client:
    """Return a cached Gemini client (created once per process)."""
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise AIAuthError("GEMINI_API_KEY not found. Set it in .env file.")
    return genai.Client(
        api_key=api_key,
        http_options=genai_types.HttpOptions(timeout=AI_TIMEOUT * 1000),
    )


# ---------------------------------------------------------------------------
# Gemini API call
# ---------------------------------------------------------------------------
def call_gemini(prompt: str, model: str = DEFAULT_MODEL) -> str:
    """Call Gemini and return the response text.

    SDK and transport errors are translated into ``AIServiceError``
    subclasses; retrying is left to the caller.
    """
    client = get_gemini_client()
    config = genai_types.GenerateContentConfig(max_output_tokens=AI_MAX_OUTPUT_TOKENS)

    try:
        response = client.models.generate_content(
            model=model,
            contents=prompt,
            config=config,
        )
    except genai_errors.ClientError as e:
        if e.code in (401, 403):
            raise AIAuthError(f"Gemini rejected the API key: {e}") from e
        if e.code == 429:
            raise RateLimitedError(f"Gemini rate limit reached: {e}") from e
        if e.code == 408:
            raise AITimeoutError(f"Gemini request timed out: {e}") from e
        raise AIRequestError(f"Gemini rejected the request: {e}") from e
    except genai_errors.ServerError as e:
        raise AINetworkError(f"Gemini server error: {e}") from e
    except genai_errors.APIError as e:
        raise AIRequestError(f"Gemini API error: {e}") from e
    except httpx.TimeoutException as e:
        raise AITimeoutError(f"Gemini call timed out after {AI_TIMEOUT}s") from e
    except httpx.TransportError as e:
        raise AINetworkError(f"Could not reach Gemini: {e}") from e

    text = response.text
    if not text or not text.strip():
        raise AIRequestError("Gemini returned an empty response")
    return text
