"""Configuration models describing linkshelf settings."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ALLOWED_ROOTS = [
    "Anime",
    "Movies",
    "TV Shows",
    "Manga",
    "Music",
    "Software",
    "Other",
]


class LinkshelfBaseModel(BaseModel):
    """Shared configuration for linkshelf Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class PathSettings(LinkshelfBaseModel):
    """Filesystem locations used by the reconciliation engine.

    Attributes:
        source_dir: Flat directory whose top-level entries are categorized.
        target_dir: Directory tree that receives the categorized symlinks.
        ledger_path: Optional override for the processed-item ledger file.
    """

    source_dir: Optional[Path] = None
    target_dir: Optional[Path] = None
    ledger_path: Optional[Path] = None


class LLMSettings(LinkshelfBaseModel):
    """LLM configuration options.

    Attributes:
        provider: Identifier for the language-model provider.
        model: Model name to target when issuing requests.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        api_key: Optional credential for hosted providers.
        api_base_url: Optional base URL for OpenAI-compatible endpoints.
        prompt: Optional extra instructions appended to the categorization prompt.
    """

    provider: str = "openrouter"
    model: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 4_000
    api_key: Optional[str] = None
    api_base_url: Optional[str] = None
    prompt: Optional[str] = None


class OrganizationOptions(LinkshelfBaseModel):
    """Settings that bound where symlinks may be placed.

    Attributes:
        allowed_roots: Top-level category folders every target path must start with.
    """

    allowed_roots: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ROOTS))

    @field_validator("allowed_roots")
    @classmethod
    def _validate_roots(cls, value: List[str]) -> List[str]:
        for root in value:
            if not root or "/" in root or root in {".", ".."}:
                raise ValueError(f"Invalid root category name: {root!r}")
        return value


class ProcessingOptions(LinkshelfBaseModel):
    """Options governing how the source root is listed.

    Attributes:
        include_hidden: Whether dot-prefixed entries are sent for categorization.
    """

    include_hidden: bool = True


class SyncSettings(LinkshelfBaseModel):
    """Reconciliation pass and scheduling settings.

    Attributes:
        dry_run: Log intended filesystem operations without performing them.
        interval_minutes: Minutes between scheduled reconciliation passes.
        reclassify: Whether passes reclassify every entry or only new ones.
    """

    dry_run: bool = True
    interval_minutes: float = Field(default=10.0, gt=0)
    reclassify: Literal["all", "new"] = "all"


class LoggingSettings(LinkshelfBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Whether to also write a rotating log file under the target root.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    file: bool = True
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(LinkshelfBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class LinkshelfConfig(LinkshelfBaseModel):
    """Top-level configuration struct for linkshelf.

    Attributes:
        paths: Source, target, and ledger locations.
        organization: Placement constraints for symlinks.
        processing: Source listing options.
        sync: Pass and scheduler settings.
        llm: Language model settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    paths: PathSettings = Field(default_factory=PathSettings)
    organization: OrganizationOptions = Field(default_factory=OrganizationOptions)
    processing: ProcessingOptions = Field(default_factory=ProcessingOptions)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DEFAULT_ALLOWED_ROOTS",
    "LinkshelfBaseModel",
    "PathSettings",
    "LLMSettings",
    "OrganizationOptions",
    "ProcessingOptions",
    "SyncSettings",
    "LoggingSettings",
    "CLIOptions",
    "LinkshelfConfig",
]
