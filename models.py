"""Data models shared across the review pipeline."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"


class RuleId(str, Enum):
    """Identifiers of the local pattern rules."""

    DEBUG_STATEMENT = "debug-statement"
    UNWRAP_USAGE = "unwrap-usage"
    PANIC_STATEMENT = "panic-statement"
    MAGIC_CONSTANT = "magic-constant"
    TODO_FIXME = "todo-fixme"


class ReviewPersona(str, Enum):
    """Voice used for the AI prompt and the narrative section."""

    DEFAULT = "default"
    LINUS_TORVALDS = "linus-torvalds"


class PullRequestRef(BaseModel):
    """Which repository (and optionally which PR) to look at."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    number: int | None = Field(
        default=None, ge=1, description="PR number; None means list mode"
    )

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def is_list_mode(self) -> bool:
        return self.number is None

    def __str__(self) -> str:
        if self.number is None:
            return self.slug
        return f"{self.slug}#{self.number}"


class Finding(BaseModel):
    """A single issue detected by a local rule on an added line."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="File path in the new tree")
    line: int = Field(description="Line number in the new file")
    rule_id: RuleId
    severity: Severity
    message: str
