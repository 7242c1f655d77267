"""Data models for repertories and their songs.

Provides dataclasses for SongEntry, MinistrationNote and Repertory with
serialization to/from the JSON documents kept in the slot store.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from louveai.core.config import Category, CategoryCatalog


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class RepertoryStatus(str, Enum):
    """Lifecycle state of a repertory."""

    DRAFT = "draft"
    APPROVED = "approved"


@dataclass
class GeneratorConfig:
    """User input for a full generation.

    Attributes:
        category_counts: Quota per category key; unlisted keys count as 0
        global_prompt: Free-text guidance for the whole service
        recent_songs: Lower-cased titles the model should avoid
    """

    category_counts: dict[str, int] = field(default_factory=dict)
    global_prompt: str = ""
    recent_songs: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.category_counts = {
            key: max(0, int(count)) for key, count in self.category_counts.items()
        }

    def quota(self, category_key: str) -> int:
        return self.category_counts.get(category_key, 0)

    def set_quota(self, category_key: str, count: int) -> None:
        """Set a category quota, clamping negative values to zero."""
        self.category_counts[category_key] = max(0, int(count))

    def adjust_quota(self, category_key: str, delta: int) -> int:
        """Add delta to a quota (never below zero) and return the new value."""
        self.set_quota(category_key, self.quota(category_key) + delta)
        return self.quota(category_key)

    @property
    def total(self) -> int:
        return sum(self.category_counts.values())


@dataclass(frozen=True)
class MinistrationNote:
    """Spoken reflection accompanying a song.

    Attributes:
        text: The reflection itself
        direction: Short liturgical intent label
        verse: Optional scriptural reference
    """

    text: str
    direction: str
    verse: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "verse": self.verse, "direction": self.direction}

    @classmethod
    def from_dict(cls, data: dict) -> "MinistrationNote":
        return cls(
            text=data["text"],
            direction=data["direction"],
            verse=data.get("verse"),
        )


@dataclass(frozen=True)
class SongEntry:
    """A song placed in a repertory.

    Attributes:
        id: Client-generated identifier, never supplied by the model
        title: Song title
        artist: Artist or hymnal source
        category: Liturgical slot of the song
        ministration: Ministration note for the song
        key: Optional musical key
        is_recent_repeat: Whether the title was used within the recency window
            when this entry was tagged
    """

    id: str
    title: str
    artist: str
    category: Category
    ministration: MinistrationNote
    key: Optional[str] = None
    is_recent_repeat: bool = False

    @classmethod
    def generate_id(cls) -> str:
        """Generate a new unique song entry ID.

        Returns:
            Unique ID string
        """
        return uuid.uuid4().hex

    def to_dict(self) -> dict[str, Any]:
        """Convert SongEntry to dictionary.

        Returns:
            Dictionary representation of the entry
        """
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "category": self.category.key,
            "category_label": self.category.label,
            "key": self.key,
            "ministration": self.ministration.to_dict(),
            "is_recent_repeat": self.is_recent_repeat,
        }

    @classmethod
    def from_dict(cls, data: dict, catalog: Optional[CategoryCatalog] = None) -> "SongEntry":
        """Create a SongEntry from a stored dictionary.

        Categories are looked up in the catalog when one is given. A category
        no longer present in the catalog is kept as stored so old repertories
        survive catalog edits.

        Args:
            data: Dictionary produced by to_dict()
            catalog: Current deployment catalog (optional)

        Returns:
            SongEntry instance
        """
        category_key = data["category"]
        if catalog is not None and category_key in catalog:
            category = catalog.get(category_key)
        else:
            category = Category(category_key, data.get("category_label") or category_key)

        return cls(
            id=data["id"],
            title=data["title"],
            artist=data["artist"],
            category=category,
            ministration=MinistrationNote.from_dict(data["ministration"]),
            key=data.get("key"),
            is_recent_repeat=bool(data.get("is_recent_repeat", False)),
        )


@dataclass
class Repertory:
    """Ordered song set for one worship service.

    Attributes:
        id: Unique repertory ID
        songs: Songs in service order
        status: draft while editable, approved once scheduled
        created_at: Creation time in milliseconds since the epoch
        service_name: Name of the service (set on finalize)
        scheduled_date: Service date as entered by the user (set on finalize)
    """

    id: str
    songs: list[SongEntry] = field(default_factory=list)
    status: RepertoryStatus = RepertoryStatus.DRAFT
    created_at: Optional[int] = None
    service_name: Optional[str] = None
    scheduled_date: Optional[str] = None

    @classmethod
    def generate_id(cls) -> str:
        """Generate a new unique repertory ID.

        Returns:
            Unique ID string
        """
        return uuid.uuid4().hex

    @property
    def is_draft(self) -> bool:
        return self.status == RepertoryStatus.DRAFT

    def find_song(self, song_id: str) -> Optional[SongEntry]:
        """Find a song by ID.

        Args:
            song_id: Entry ID

        Returns:
            SongEntry or None if not present
        """
        for song in self.songs:
            if song.id == song_id:
                return song
        return None

    def copy_with(self, **changes) -> "Repertory":
        """Return a copy with a fresh song list and the given fields replaced."""
        changes.setdefault("songs", list(self.songs))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert Repertory to dictionary.

        Returns:
            Dictionary representation of the repertory
        """
        return {
            "id": self.id,
            "songs": [song.to_dict() for song in self.songs],
            "status": self.status.value,
            "created_at": self.created_at,
            "service_name": self.service_name,
            "scheduled_date": self.scheduled_date,
        }

    @classmethod
    def from_dict(cls, data: dict, catalog: Optional[CategoryCatalog] = None) -> "Repertory":
        """Create a Repertory from a stored dictionary.

        Args:
            data: Dictionary produced by to_dict()
            catalog: Current deployment catalog (optional)

        Returns:
            Repertory instance
        """
        return cls(
            id=data["id"],
            songs=[SongEntry.from_dict(s, catalog) for s in data.get("songs", [])],
            status=RepertoryStatus(data.get("status", RepertoryStatus.DRAFT.value)),
            created_at=data.get("created_at"),
            service_name=data.get("service_name"),
            scheduled_date=data.get("scheduled_date"),
        )
