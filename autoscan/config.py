"""
Configuration dataclasses for the auto-scan loop.
"""

from dataclasses import dataclass, field
from typing import Optional, List


VALID_AI_MODES = ['extract', 'generate']


@dataclass
class RetryConfig:
    """Configuration for the per-page retry policy."""
    retry_delay: float = 1.0


@dataclass
class ScanConfig:
    """Run options for one auto-scan session."""
    deck_id: str
    source_id: str

    # Page handling
    include_next_page: bool = False
    min_text_length: int = 50

    # Draft generation
    ai_mode: str = 'extract'
    default_tags: List[str] = field(default_factory=list)

    # Bulk persistence
    session_tags: List[str] = field(default_factory=list)

    # Retry settings
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Range
    start_page: Optional[int] = None
    end_page: Optional[int] = None

    def __post_init__(self):
        if self.ai_mode not in VALID_AI_MODES:
            raise ValueError(f"Invalid AI mode: {self.ai_mode}. Must be one of {VALID_AI_MODES}")
