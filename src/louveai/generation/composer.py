"""Generation request composition.

Turns category quotas, free-text guidance and the recency set into the
structured request sent to the LLM. Two request shapes exist: a whole
repertory (array of songs) and a single replacement song (one object).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from louveai.app.logging_config import get_logger
from louveai.core.config import DEFAULT_LANGUAGE, Category, CategoryCatalog
from louveai.errors import InvalidConfig
from louveai.models import GeneratorConfig, SongEntry

logger = get_logger(__name__)

DEFAULT_SWAP_INSTRUCTION = "Swap it for another song from the same category."

SONG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "artist": {"type": "string"},
        "category": {"type": "string"},
        "key": {"type": "string"},
        "ministration": {
            "type": "object",
            "properties": {
                "text": {"type": "string"},
                "verse": {"type": "string"},
                "direction": {"type": "string"},
            },
            "required": ["text", "direction"],
        },
    },
    "required": ["title", "artist", "category", "ministration"],
}

REPERTORY_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": SONG_SCHEMA,
}


class ResponseShape(str, Enum):
    """Expected top-level shape of the model response."""

    SINGLE = "single"
    ARRAY = "array"


@dataclass(frozen=True)
class GenerationRequest:
    """Structured request for the generative model.

    Attributes:
        system_instruction: Role, rules and context for the model
        contents: The user turn describing what to generate
        response_schema: JSON Schema of the expected answer
        shape: Whether one song or an array of songs is expected
        quotas: Requested count per category key (full generation only)
        pinned_category: Category the answer must stay in (replacement only)
        recent_titles: Recency exclusion list sent with the request
    """

    system_instruction: str
    contents: str
    response_schema: dict[str, Any]
    shape: ResponseShape
    quotas: dict[str, int] = field(default_factory=dict)
    pinned_category: Optional[Category] = None
    recent_titles: tuple[str, ...] = ()


def _exclusion_list(titles: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted({t.lower() for t in titles}))


def _format_exclusions(titles: Sequence[str]) -> str:
    return ", ".join(titles) if titles else "none"


def compose_full_request(
    config: GeneratorConfig,
    recent_titles: Iterable[str],
    catalog: CategoryCatalog,
    liturgy: Sequence[str] = (),
    language: str = DEFAULT_LANGUAGE,
) -> GenerationRequest:
    """Compose the request for a whole repertory.

    Categories with a zero quota are left out of the request entirely.

    Args:
        config: Quotas, guidance and any caller-supplied titles to avoid
        recent_titles: Recency set snapshot for this request
        catalog: Category catalog (defines slot order and labels)
        liturgy: Fixed liturgical ordering, one stage per item (may be empty)
        language: Output language

    Returns:
        GenerationRequest with the array response shape

    Raises:
        InvalidConfig: If no category has a positive quota
    """
    quotas = {c.key: config.quota(c.key) for c in catalog if config.quota(c.key) > 0}
    if not quotas:
        raise InvalidConfig("Select at least one song before generating.")

    exclusions = _exclusion_list([*config.recent_songs, *recent_titles])

    lines = [
        "You are a senior worship minister organizing a church service.",
    ]
    if liturgy:
        lines.append("The service follows this FIXED liturgical sequence:")
        lines.extend(f"{i}. {stage}" for i, stage in enumerate(liturgy, 1))
        lines.append("Generate the songs in the correct order of the liturgy above.")
    lines.extend(
        [
            "For each song, write a short prophetic ministration with a direction "
            "and, when fitting, a Bible verse.",
            "Use exactly one of these category labels for each song: "
            + "; ".join(catalog.get(key).label for key in quotas)
            + ".",
            f"Avoid songs played recently: {_format_exclusions(exclusions)}.",
            f"Context: {config.global_prompt.strip() or 'none'}.",
            f"Language: {language}.",
        ]
    )

    requested = ", ".join(
        f"{count} song(s) of {catalog.get(key).label}" for key, count in quotas.items()
    )
    contents = f"Generate the complete repertory with these quantities: {requested}."

    logger.debug(
        f"Composed full request: quotas={quotas}, exclusions={len(exclusions)}"
    )

    return GenerationRequest(
        system_instruction="\n".join(lines),
        contents=contents,
        response_schema=REPERTORY_SCHEMA,
        shape=ResponseShape.ARRAY,
        quotas=quotas,
        recent_titles=exclusions,
    )


def compose_replacement_request(
    current_entry: SongEntry,
    global_prompt: str,
    instruction: str,
    recent_titles: Iterable[str],
    language: str = DEFAULT_LANGUAGE,
) -> GenerationRequest:
    """Compose the request for replacing one song.

    The category of the current entry is pinned: the replacement always stays
    in the same liturgical slot.

    Args:
        current_entry: Entry being replaced
        global_prompt: Service-wide guidance
        instruction: Generic swap instruction or a user refinement
        recent_titles: Recency set snapshot for this request
        language: Output language

    Returns:
        GenerationRequest with the single-song response shape
    """
    category = current_entry.category
    exclusions = _exclusion_list(recent_titles)
    instruction = instruction.strip() or DEFAULT_SWAP_INSTRUCTION

    lines = [
        f"Replace this song while keeping its place in the liturgy (Category: {category.label}).",
        f"Instruction: {instruction}",
        f"Do not use: {_format_exclusions(exclusions)}.",
        f"Context: {global_prompt.strip() or 'none'}.",
        f"Language: {language}.",
    ]
    contents = (
        f'Replace "{current_entry.title}" with another song suited to the moment of '
        f"{category.label}."
    )

    logger.debug(
        f"Composed replacement request for {current_entry.id} in '{category.key}'"
    )

    return GenerationRequest(
        system_instruction="\n".join(lines),
        contents=contents,
        response_schema=SONG_SCHEMA,
        shape=ResponseShape.SINGLE,
        pinned_category=category,
        recent_titles=exclusions,
    )
