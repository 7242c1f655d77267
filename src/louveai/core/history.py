"""Recently used song titles.

Derives the anti-repetition set from stored repertories. Pure functions only:
callers pass the collection and the reference time.
"""

from typing import Iterable

from louveai.core.config import DEFAULT_RECENT_WINDOW_DAYS, MS_PER_DAY
from louveai.models import Repertory

DEFAULT_WINDOW_MS = DEFAULT_RECENT_WINDOW_DAYS * MS_PER_DAY


def recent_titles(
    repertories: Iterable[Repertory],
    now_ms: int,
    window_ms: int = DEFAULT_WINDOW_MS,
) -> frozenset[str]:
    """Collect lower-cased titles used within the trailing window.

    Repertories without a creation time never contribute.

    Args:
        repertories: Persisted repertories
        now_ms: Reference time in milliseconds since the epoch
        window_ms: Window length in milliseconds (default: 30 days)

    Returns:
        Set of distinct lower-cased titles
    """
    cutoff = now_ms - window_ms
    titles = set()
    for repertory in repertories:
        if repertory.created_at is None or repertory.created_at <= cutoff:
            continue
        titles.update(song.title.lower() for song in repertory.songs)
    return frozenset(titles)


def is_recent(title: str, recent: frozenset[str]) -> bool:
    """Check a title against a recency set (case-insensitive)."""
    return title.lower() in recent


def normalize_titles(titles: Iterable[str]) -> frozenset[str]:
    """Lower-case and trim caller-supplied titles, dropping blanks."""
    return frozenset(t.strip().lower() for t in titles if t and t.strip())
