"""
Data models for the auto-scan loop.

Checkpoint models are strict pydantic models: the persisted payload must match
the field set and types exactly, otherwise it is treated as corrupt.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


MAX_CONSECUTIVE_ERRORS = 3


class ScanStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    EMPTY_SUCCESS = "empty_success"
    ERROR = "error"


class CheckpointModel(BaseModel):
    """Base for persisted models: camelCase on the wire, no coercion, no extras."""

    model_config = ConfigDict(
        strict=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AutoScanStats(CheckpointModel):
    cards_created: int = Field(ge=0)
    pages_processed: int = Field(ge=0)
    errors_count: int = Field(ge=0)

    @classmethod
    def zero(cls) -> "AutoScanStats":
        return cls(cards_created=0, pages_processed=0, errors_count=0)


class SkippedPage(CheckpointModel):
    page_number: int = Field(ge=1)
    reason: str = Field(min_length=1)


class AutoScanState(CheckpointModel):
    """Persistent state for a resumable scan session."""

    is_scanning: bool
    current_page: int = Field(ge=1)
    total_pages: int = Field(ge=1)
    stats: AutoScanStats
    skipped_pages: List[SkippedPage]
    consecutive_errors: int = Field(ge=0, le=MAX_CONSECUTIVE_ERRORS)
    last_updated: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_page_bounds(self) -> "AutoScanState":
        if self.current_page > self.total_pages + 1:
            raise ValueError(
                f"currentPage {self.current_page} is beyond totalPages + 1 ({self.total_pages + 1})"
            )
        for skipped in self.skipped_pages:
            if skipped.page_number > self.total_pages:
                raise ValueError(
                    f"skipped page {skipped.page_number} is beyond totalPages ({self.total_pages})"
                )
        return self

    @classmethod
    def fresh(cls, total_pages: int, start_page: int = 1, last_updated: int = 0) -> "AutoScanState":
        """Zeroed state for a new session starting at start_page."""
        return cls(
            is_scanning=True,
            current_page=start_page,
            total_pages=total_pages,
            stats=AutoScanStats.zero(),
            skipped_pages=[],
            consecutive_errors=0,
            last_updated=last_updated,
        )

    def paused(self) -> "AutoScanState":
        """Copy of this state with only the running flag cleared."""
        return self.model_copy(update={"is_scanning": False}, deep=True)

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class McqDraft(BaseModel):
    """A generated multiple-choice question awaiting persistence."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    stem: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_index: int = Field(ge=0)
    explanation: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("options")
    @classmethod
    def _options_not_blank(cls, options: List[str]) -> List[str]:
        if any(not option.strip() for option in options):
            raise ValueError("options must not be blank")
        return options

    @model_validator(mode="after")
    def _correct_index_in_range(self) -> "McqDraft":
        if self.correct_index >= len(self.options):
            raise ValueError("correctIndex must point at one of the options")
        return self


@dataclass
class GenerationResult:
    """Response of the draft generation step."""
    ok: bool
    drafts: List[McqDraft] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PersistResult:
    """Response of the bulk persistence step."""
    ok: bool
    created_count: int = 0
    error: Optional[str] = None


@dataclass
class PageOutcome:
    """Classified result of a single processing attempt."""
    kind: OutcomeKind
    cards_created: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.EMPTY_SUCCESS)


@dataclass
class PageResult:
    """Terminal outcome of one page after the retry policy."""
    page_number: int
    succeeded: bool
    attempts: int
    cards_created: int = 0
    reason: Optional[str] = None


@dataclass
class ScanResult:
    """Result of a scan run."""
    status: ScanStatus
    deck_id: str
    source_id: str
    started_at: str
    completed_at: str
    start_page: int
    current_page: int
    total_pages: int
    stats: AutoScanStats
    skipped_pages: List[SkippedPage] = field(default_factory=list)
    breaker_tripped: bool = False
    duration_seconds: float = 0.0
    cards_per_hour: float = 0.0
