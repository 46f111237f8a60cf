"""Payload models for categorization responses."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from linkshelf.organization.models import CategorizationResult, Entry

LOGGER = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when the categorization oracle cannot produce a usable response."""


class SourcePayload(BaseModel):
    """Source item echoed back by the oracle."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(description="The original source name, i.e. 'Nichijou'")
    type: Literal["file", "folder"] = Field(
        description="The type of the source item, i.e. 'file' or 'folder'"
    )


class CategorizationPayload(BaseModel):
    """One categorization item as returned by the oracle."""

    model_config = ConfigDict(extra="ignore")

    source: SourcePayload
    targets: List[str] = Field(
        default_factory=list,
        description=(
            "The target paths where the source item should be linked to, e.g. "
            "'Movies/Nichijou' or 'Anime/Nichijou'. For files, the target path does "
            "not include the name of the file."
        ),
    )


def parse_categorizations(payload: Any, entries: Iterable[Entry]) -> list[CategorizationResult]:
    """Validate an untrusted oracle response against the entries that were sent.

    Malformed items and items naming an entry that was not sent are dropped
    with a warning. The entry kind always comes from the listing, never from
    the response.

    Args:
        payload: Raw response, expected to be a sequence of mappings or models.
        entries: Entries included in the request.

    Returns:
        list[CategorizationResult]: Results for known entries, in response order.

    Raises:
        ClassificationError: If the payload is not a sequence at all.
    """
    if isinstance(payload, (str, bytes)) or not isinstance(payload, (list, tuple)):
        raise ClassificationError(
            f"Expected a list of categorizations, got {type(payload).__name__}"
        )

    known = {entry.name: entry for entry in entries}
    results: list[CategorizationResult] = []
    for index, raw in enumerate(payload):
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        if isinstance(raw, dict) and isinstance(raw.get("targets"), list):
            raw = {
                **raw,
                "targets": [target for target in raw["targets"] if isinstance(target, str)],
            }
        try:
            item = CategorizationPayload.model_validate(raw)
        except ValidationError as exc:
            LOGGER.warning("Dropping malformed categorization #%d: %s", index, exc)
            continue

        entry = known.get(item.source.name)
        if entry is None:
            LOGGER.warning("Dropping categorization for unknown entry %r", item.source.name)
            continue
        if item.source.type != entry.kind.value:
            LOGGER.debug(
                "Oracle reported %r as %s; using listed kind %s",
                entry.name,
                item.source.type,
                entry.kind.value,
            )
        targets = [target.strip() for target in item.targets if target.strip()]
        results.append(CategorizationResult(source=entry, targets=targets))
    return results


__all__ = [
    "ClassificationError",
    "SourcePayload",
    "CategorizationPayload",
    "parse_categorizations",
]
