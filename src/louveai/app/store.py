"""Repertory storage.

BlobStore is a string-keyed slot store on a single SQLite table. RepertoryStore
keeps the persisted collection of finalized repertories (newest first) in one
slot and the working draft in another, and implements the draft editing
operations.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Generator, Literal, Optional

from pydantic import BaseModel, ConfigDict

from louveai.app.logging_config import get_logger
from louveai.core.config import CategoryCatalog
from louveai.errors import ImmutableRepertory, IncompleteSchedule, NotFound
from louveai.models import Repertory, RepertoryStatus, SongEntry, now_ms

logger = get_logger(__name__)

REPERTORIES_KEY = "louveai_repertories"
DRAFT_KEY = "louveai_draft"
SCHEMA_VERSION = 1

CREATE_SLOTS_TABLE = """
CREATE TABLE IF NOT EXISTS slots (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class StoredMinistration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str
    direction: str
    verse: Optional[str] = None


class StoredSong(BaseModel):
    """Song entry as kept in the slot store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    artist: str
    category: str
    category_label: Optional[str] = None
    key: Optional[str] = None
    ministration: StoredMinistration
    is_recent_repeat: bool = False


class StoredRepertory(BaseModel):
    """Repertory as kept in the slot store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    songs: list[StoredSong] = []
    status: RepertoryStatus = RepertoryStatus.DRAFT
    created_at: Optional[int] = None
    service_name: Optional[str] = None
    scheduled_date: Optional[str] = None

    def to_repertory(self, catalog: Optional[CategoryCatalog] = None) -> Repertory:
        return Repertory.from_dict(self.model_dump(mode="json"), catalog)


class StoredCollection(BaseModel):
    """Versioned envelope of the persisted collection."""

    version: Literal[1]
    repertories: list[StoredRepertory]


class Direction(str, Enum):
    """Direction for moving a song within a repertory."""

    UP = "up"
    DOWN = "down"


class BlobStore:
    """Key-value slot store backed by SQLite.

    Attributes:
        db_path: Path to the SQLite database file
    """

    def __init__(self, db_path: Path):
        """Initialize the slot store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create database connection.

        Returns:
            Active SQLite connection
        """
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path)
            self._connection.execute(CREATE_SLOTS_TABLE)
            self._connection.commit()
        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "BlobStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database transactions.

        Yields:
            SQLite connection with active transaction
        """
        conn = self.connection
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def read(self, key: str) -> Optional[str]:
        """Read a slot.

        Args:
            key: Slot key

        Returns:
            Stored string, or None if the slot is empty
        """
        cursor = self.connection.execute("SELECT value FROM slots WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        """Replace the content of a slot.

        Args:
            key: Slot key
            value: String to store
        """
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO slots (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, datetime.now().isoformat()),
            )

    def delete(self, key: str) -> bool:
        """Empty a slot.

        Returns:
            True if the slot existed
        """
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM slots WHERE key = ?", (key,))
            return cursor.rowcount > 0


class RepertoryStore:
    """Working draft plus the persisted collection of finalized repertories.

    The collection is read once at construction and written back on every
    change. Draft operations return new Repertory objects and never touch the
    collection.
    """

    def __init__(
        self,
        blobs: BlobStore,
        catalog: Optional[CategoryCatalog] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the store.

        Args:
            blobs: Slot store used for persistence
            catalog: Category catalog used to rehydrate stored entries
            clock: Millisecond clock used for created_at
        """
        self.blobs = blobs
        self.catalog = catalog
        self.clock = clock
        self._repertories: list[Repertory] = self._load_collection()

    # Persisted collection

    def _load_collection(self) -> list[Repertory]:
        raw = self.blobs.read(REPERTORIES_KEY)
        if raw is None:
            return []

        try:
            collection = StoredCollection.model_validate_json(raw)
            repertories = [r.to_repertory(self.catalog) for r in collection.repertories]
        except ValueError as e:
            logger.warning(f"Stored repertories are malformed, starting empty: {e}")
            return []

        logger.info(f"Loaded {len(repertories)} stored repertory(ies)")
        return repertories

    def _persist(self) -> None:
        payload = {
            "version": SCHEMA_VERSION,
            "repertories": [r.to_dict() for r in self._repertories],
        }
        self.blobs.write(REPERTORIES_KEY, json.dumps(payload, ensure_ascii=False))

    @property
    def repertories(self) -> list[Repertory]:
        """Finalized repertories, newest first."""
        return list(self._repertories)

    def get(self, repertory_id: str) -> Optional[Repertory]:
        """Get a stored repertory by ID.

        Returns:
            Repertory or None if not found
        """
        for repertory in self._repertories:
            if repertory.id == repertory_id:
                return repertory
        return None

    def finalize(self, repertory: Repertory, service_name: str, scheduled_date: str) -> Repertory:
        """Approve a repertory and store it.

        A repertory whose id is already stored is overwritten in place;
        otherwise it is inserted at the front of the collection.

        Args:
            repertory: Draft to approve
            service_name: Name of the service
            scheduled_date: Date of the service

        Returns:
            The approved repertory

        Raises:
            IncompleteSchedule: If the name or date is blank
            ImmutableRepertory: If the repertory is already approved
        """
        self._ensure_draft(repertory)
        service_name = (service_name or "").strip()
        scheduled_date = (scheduled_date or "").strip()
        if not service_name or not scheduled_date:
            raise IncompleteSchedule("Service name and date are required to schedule a repertory.")

        approved = repertory.copy_with(
            status=RepertoryStatus.APPROVED,
            service_name=service_name,
            scheduled_date=scheduled_date,
        )

        for i, existing in enumerate(self._repertories):
            if existing.id == approved.id:
                self._repertories[i] = approved
                logger.info(f"Updated scheduled repertory {approved.id}")
                break
        else:
            self._repertories.insert(0, approved)
            logger.info(f"Scheduled new repertory {approved.id} for {scheduled_date}")

        self._persist()
        self.clear_draft()
        return approved

    def delete(self, repertory_id: str) -> bool:
        """Remove a stored repertory. Deleting an absent id is a no-op.

        Returns:
            True if a repertory was removed
        """
        remaining = [r for r in self._repertories if r.id != repertory_id]
        if len(remaining) == len(self._repertories):
            return False

        self._repertories = remaining
        self._persist()
        logger.info(f"Deleted repertory {repertory_id}")
        return True

    def open_for_edit(self, repertory_id: str) -> Repertory:
        """Clone a stored repertory back into a draft under the same id.

        Raises:
            NotFound: If the id is not stored
        """
        stored = self.get(repertory_id)
        if stored is None:
            raise NotFound(f"Repertory not found: {repertory_id}")
        return stored.copy_with(status=RepertoryStatus.DRAFT)

    # Draft operations

    def create_draft(self, songs: list[SongEntry]) -> Repertory:
        """Create a new draft repertory.

        Args:
            songs: Validated entries in service order

        Returns:
            Draft with a fresh id and created_at set to now
        """
        return Repertory(
            id=Repertory.generate_id(),
            songs=list(songs),
            status=RepertoryStatus.DRAFT,
            created_at=self.clock(),
        )

    @staticmethod
    def _ensure_draft(repertory: Repertory) -> None:
        if not repertory.is_draft:
            raise ImmutableRepertory(
                f"Repertory {repertory.id} is approved; open it for editing first."
            )

    def replace_entry(self, repertory: Repertory, song_id: str, new_entry: SongEntry) -> Repertory:
        """Replace one song, keeping its position.

        Raises:
            NotFound: If song_id is not in the repertory
            ImmutableRepertory: If the repertory is approved
        """
        self._ensure_draft(repertory)
        songs = list(repertory.songs)
        for i, song in enumerate(songs):
            if song.id == song_id:
                songs[i] = new_entry
                return repertory.copy_with(songs=songs)
        raise NotFound(f"Song not found in repertory: {song_id}")

    def reorder(self, repertory: Repertory, index: int, direction: Direction) -> Repertory:
        """Swap a song with its neighbour. Moves past either end are no-ops.

        Raises:
            ImmutableRepertory: If the repertory is approved
        """
        self._ensure_draft(repertory)
        target = index - 1 if Direction(direction) == Direction.UP else index + 1
        songs = list(repertory.songs)
        if not (0 <= index < len(songs)) or not (0 <= target < len(songs)):
            return repertory

        songs[index], songs[target] = songs[target], songs[index]
        return repertory.copy_with(songs=songs)

    # Working draft slot

    def load_draft(self) -> Optional[Repertory]:
        """Load the saved working draft, if any."""
        raw = self.blobs.read(DRAFT_KEY)
        if raw is None:
            return None
        try:
            return StoredRepertory.model_validate_json(raw).to_repertory(self.catalog)
        except ValueError as e:
            logger.warning(f"Saved draft is malformed, discarding: {e}")
            return None

    def save_draft(self, repertory: Optional[Repertory]) -> None:
        """Save the working draft (None clears it)."""
        if repertory is None:
            self.clear_draft()
            return
        self.blobs.write(DRAFT_KEY, json.dumps(repertory.to_dict(), ensure_ascii=False))

    def clear_draft(self) -> None:
        self.blobs.delete(DRAFT_KEY)
