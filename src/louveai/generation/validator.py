"""Validation and tagging of LLM song candidates.

Raw model output is parsed, checked for required fields, given a fresh
client-side id, and tagged against the recency set. A full-repertory response
is accepted all-or-nothing.
"""

import json
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from louveai.app.logging_config import get_logger
from louveai.core.config import Category, CategoryCatalog
from louveai.core.history import is_recent
from louveai.errors import MalformedCandidate
from louveai.generation.composer import ResponseShape
from louveai.models import MinistrationNote, SongEntry

logger = get_logger(__name__)


class RawMinistration(BaseModel):
    """Ministration note as returned by the model."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    text: str = Field(..., min_length=1)
    direction: str = Field(..., min_length=1)
    verse: Optional[str] = None

    @field_validator("verse")
    @classmethod
    def blank_verse_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class RawCandidate(BaseModel):
    """Song candidate as returned by the model."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str = Field(..., min_length=1)
    artist: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    key: Optional[str] = None
    ministration: RawMinistration

    @field_validator("key")
    @classmethod
    def blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


def _strip_code_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_response(text: Optional[str], shape: ResponseShape) -> Any:
    """Decode the model's JSON answer and check its top-level shape.

    Args:
        text: Raw response text (markdown code fences are tolerated)
        shape: Expected shape of the answer

    Returns:
        Decoded list (ARRAY) or dict (SINGLE)

    Raises:
        MalformedCandidate: On empty text, invalid JSON or a shape mismatch
    """
    if not text or not text.strip():
        raise MalformedCandidate("Model returned an empty response")

    try:
        data = json.loads(_strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise MalformedCandidate(f"Model returned invalid JSON: {e}") from e

    if shape == ResponseShape.ARRAY and not isinstance(data, list):
        raise MalformedCandidate(f"Expected an array of songs, got {type(data).__name__}")
    if shape == ResponseShape.SINGLE and not isinstance(data, dict):
        raise MalformedCandidate(f"Expected a single song object, got {type(data).__name__}")

    return data


def validate_candidate(
    raw: Any,
    recent_titles: Iterable[str],
    catalog: CategoryCatalog,
    pinned_category: Optional[Category] = None,
) -> SongEntry:
    """Turn one raw candidate into a tagged SongEntry.

    Args:
        raw: Decoded candidate object
        recent_titles: Recency set snapshot (lower-cased titles)
        catalog: Category catalog used to resolve the category string
        pinned_category: Category forced onto the entry (replacements)

    Returns:
        SongEntry with a fresh id and is_recent_repeat computed now

    Raises:
        MalformedCandidate: If a required field is missing or the category
            cannot be resolved
    """
    if not isinstance(raw, dict):
        raise MalformedCandidate(f"Song candidate must be an object, got {type(raw).__name__}")

    try:
        candidate = RawCandidate.model_validate(raw)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedCandidate(f"Song candidate is missing or has invalid fields: {fields}") from e

    category = pinned_category or catalog.resolve(candidate.category)
    if category is None:
        raise MalformedCandidate(f"Unknown category in candidate: {candidate.category!r}")

    return SongEntry(
        id=SongEntry.generate_id(),
        title=candidate.title,
        artist=candidate.artist,
        category=category,
        key=candidate.key,
        ministration=MinistrationNote(
            text=candidate.ministration.text,
            direction=candidate.ministration.direction,
            verse=candidate.ministration.verse,
        ),
        is_recent_repeat=is_recent(candidate.title, frozenset(recent_titles)),
    )


def validate_full_response(
    text: Optional[str],
    recent_titles: Iterable[str],
    catalog: CategoryCatalog,
) -> list[SongEntry]:
    """Validate a whole-repertory answer.

    Any malformed candidate rejects the whole response.

    Returns:
        Entries in the order the model returned them
    """
    recent = frozenset(recent_titles)
    data = parse_response(text, ResponseShape.ARRAY)
    entries = [validate_candidate(raw, recent, catalog) for raw in data]

    repeats = sum(1 for e in entries if e.is_recent_repeat)
    logger.info(f"Validated {len(entries)} candidate(s), {repeats} recent repeat(s)")
    return entries


def validate_replacement_response(
    text: Optional[str],
    current_entry: SongEntry,
    recent_titles: Iterable[str],
    catalog: CategoryCatalog,
) -> SongEntry:
    """Validate a single replacement answer.

    The replacement keeps the category of the entry it replaces and always
    gets a new id.
    """
    data = parse_response(text, ResponseShape.SINGLE)
    entry = validate_candidate(
        data, recent_titles, catalog, pinned_category=current_entry.category
    )
    logger.info(
        f"Replacement for '{current_entry.title}': '{entry.title}'"
        f"{' (recent repeat)' if entry.is_recent_repeat else ''}"
    )
    return entry


def quota_mismatches(
    entries: Iterable[SongEntry],
    quotas: dict[str, int],
) -> dict[str, tuple[int, int]]:
    """Compare received counts per category against the requested quotas.

    Args:
        entries: Validated entries
        quotas: Requested count per category key

    Returns:
        Mapping of category key to (requested, received) for every category
        where the two differ
    """
    received: dict[str, int] = {}
    for entry in entries:
        received[entry.category.key] = received.get(entry.category.key, 0) + 1

    mismatches = {}
    for key in dict.fromkeys([*quotas, *received]):
        requested = quotas.get(key, 0)
        got = received.get(key, 0)
        if requested != got:
            mismatches[key] = (requested, got)
    return mismatches
