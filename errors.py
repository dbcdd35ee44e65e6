"""Exception taxonomy for rubber.

Only ``FatalFetchError`` (and its subclasses) ends a run. Everything else is
absorbed by the pipeline and shows up as a missing section in the report.
"""

from models import PullRequestRef


class RubberError(Exception):
    """Base class for all rubber errors."""


# ---------------------------------------------------------------------------
# GitHub (fatal)
# ---------------------------------------------------------------------------
class FatalFetchError(RubberError):
    """PR data could not be fetched, so no report is possible."""

    def __init__(self, message: str, ref: PullRequestRef | None = None):
        super().__init__(message)
        self.ref = ref


class NotFoundError(FatalFetchError):
    """Repository or pull request does not exist (or is not visible)."""


class AuthError(FatalFetchError):
    """GitHub rejected the credentials or denied access."""


class NetworkError(FatalFetchError):
    """GitHub could not be reached, timed out, or returned a server error."""


# ---------------------------------------------------------------------------
# AI completion (degraded)
# ---------------------------------------------------------------------------
class AIServiceError(RubberError):
    """The AI-completion call failed."""

    transient: bool = False


class AIAuthError(AIServiceError):
    """Missing or rejected API key."""


class RateLimitedError(AIServiceError):
    """The AI service refused the call because of quota or rate limits."""


class AIRequestError(AIServiceError):
    """Malformed request or unusable response."""


class AITimeoutError(AIServiceError):
    """The AI service did not answer in time."""

    transient = True


class AINetworkError(AIServiceError):
    """Connection failure or 5xx from the AI service."""

    transient = True


TRANSIENT_AI_ERRORS: tuple[type[Exception], ...] = (AITimeoutError, AINetworkError)
