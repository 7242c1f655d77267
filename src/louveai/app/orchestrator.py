"""Repertory orchestration.

Sequences the pipeline for every user-triggered operation:
recency snapshot -> request -> LLM call -> validation/tagging -> store.
Only a fully validated response is ever applied; every failure leaves the
draft as it was.
"""

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from louveai.app.logging_config import get_logger
from louveai.app.state import AppState
from louveai.app.store import Direction, RepertoryStore
from louveai.core.config import AppConfig
from louveai.core.history import normalize_titles, recent_titles
from louveai.errors import (
    ExternalCallFailure,
    GenerationInProgress,
    ImmutableRepertory,
    IncompleteSchedule,
    InvalidConfig,
    MalformedCandidate,
    NotFound,
)
from louveai.generation.client import GenerationClient
from louveai.generation.composer import (
    DEFAULT_SWAP_INSTRUCTION,
    compose_full_request,
    compose_replacement_request,
)
from louveai.generation.validator import (
    quota_mismatches,
    validate_full_response,
    validate_replacement_response,
)
from louveai.models import GeneratorConfig, Repertory, now_ms

logger = get_logger(__name__)

GENERATION_ERROR = "Generation failed. Please try again."


class Orchestrator:
    """Runs generation, replacement and scheduling against one working draft.

    At most one generation may be outstanding at a time; a second trigger
    while busy raises GenerationInProgress instead of queuing.
    """

    def __init__(
        self,
        store: RepertoryStore,
        client: GenerationClient,
        config: AppConfig,
        state: Optional[AppState] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the orchestrator.

        Args:
            store: Repertory store (collection and draft slot)
            client: LLM client
            config: Application configuration
            state: Existing state to drive (a fresh one is built if None)
            clock: Millisecond clock used for the recency window
        """
        self.store = store
        self.client = client
        self.config = config
        self.catalog = config.catalog
        self.clock = clock

        if state is None:
            state = AppState(
                generator=GeneratorConfig(
                    category_counts=dict(config.category_counts),
                    global_prompt=config.global_prompt,
                ),
                draft=store.load_draft(),
            )
        self.state = state

    # Derived views

    def recent_titles(self) -> frozenset[str]:
        """Snapshot of titles used within the configured window."""
        return recent_titles(self.store.repertories, self.clock(), self.config.recent_window_ms)

    def avoided_titles(self) -> frozenset[str]:
        """Recent titles plus the titles the user asked to avoid.

        This set both goes into the request and tags the returned entries.
        """
        return self.recent_titles() | normalize_titles(self.state.generator.recent_songs)

    # Generator input

    def set_quota(self, category_key: str, count: int) -> int:
        """Set the quota for a category (negative values clamp to zero).

        Raises:
            InvalidConfig: If the category is not in the catalog
        """
        if category_key not in self.catalog:
            raise InvalidConfig(
                f"Unknown category '{category_key}'. Valid: {', '.join(self.catalog.keys)}"
            )
        self.state.generator.set_quota(category_key, count)
        return self.state.generator.quota(category_key)

    def set_global_prompt(self, prompt: str) -> None:
        self.state.generator.global_prompt = prompt

    def set_avoided_songs(self, titles: list[str]) -> None:
        self.state.generator.recent_songs = sorted(normalize_titles(titles))

    # Generation

    @contextmanager
    def _busy(self) -> Generator[None, None, None]:
        if self.state.is_loading:
            raise GenerationInProgress("A generation is already in progress.")
        self.state.set_loading(True)
        self.state.clear_error()
        try:
            yield
        finally:
            self.state.set_loading(False)

    def _apply_draft(self, draft: Optional[Repertory]) -> None:
        self.state.set_draft(draft)
        self.store.save_draft(draft)

    def _require_draft(self) -> Repertory:
        if self.state.draft is None:
            raise NotFound("There is no draft repertory to edit.")
        return self.state.draft

    async def generate_full(self) -> Repertory:
        """Generate a whole new draft from the current quotas and guidance.

        Returns:
            The new draft

        Raises:
            InvalidConfig: If every quota is zero (no call is made)
            GenerationInProgress: If another generation is outstanding
            ExternalCallFailure: If the model call fails
            MalformedCandidate: If the response fails validation
        """
        if self.state.is_loading:
            raise GenerationInProgress("A generation is already in progress.")

        recent = self.avoided_titles()
        try:
            request = compose_full_request(
                self.state.generator,
                recent,
                self.catalog,
                liturgy=self.config.liturgy,
                language=self.config.language,
            )
        except InvalidConfig as e:
            self.state.set_error(str(e))
            raise

        with self._busy():
            try:
                text = await self.client.complete(request)
                entries = validate_full_response(text, recent, self.catalog)
            except (ExternalCallFailure, MalformedCandidate) as e:
                logger.error(f"Full generation failed: {e}")
                self.state.set_error(GENERATION_ERROR)
                raise

        mismatches = quota_mismatches(entries, request.quotas)
        warnings = [
            f"{key}: requested {requested}, received {received}"
            for key, (requested, received) in mismatches.items()
        ]
        if warnings:
            logger.warning(f"Model did not follow quotas: {'; '.join(warnings)}")
        self.state.set_warnings(warnings)

        draft = self.store.create_draft(entries)
        self._apply_draft(draft)
        logger.info(f"Generated draft {draft.id} with {len(entries)} song(s)")
        return draft

    async def regenerate_one(self, song_id: str) -> Repertory:
        """Swap one song for another in the same category."""
        return await self._replace(song_id, DEFAULT_SWAP_INSTRUCTION)

    async def adjust_one(self, song_id: str, instruction: str) -> Repertory:
        """Replace one song following a user instruction.

        A blank instruction is a no-op.
        """
        if not instruction or not instruction.strip():
            return self._require_draft()
        return await self._replace(song_id, instruction)

    async def _replace(self, song_id: str, instruction: str) -> Repertory:
        if self.state.is_loading:
            raise GenerationInProgress("A generation is already in progress.")

        draft = self._require_draft()
        if not draft.is_draft:
            raise ImmutableRepertory(f"Repertory {draft.id} is not a draft.")
        current = draft.find_song(song_id)
        if current is None:
            raise NotFound(f"Song not found in draft: {song_id}")

        recent = self.avoided_titles()
        request = compose_replacement_request(
            current,
            self.state.generator.global_prompt,
            instruction,
            recent,
            language=self.config.language,
        )

        with self._busy():
            try:
                text = await self.client.complete(request)
                entry = validate_replacement_response(text, current, recent, self.catalog)
            except (ExternalCallFailure, MalformedCandidate) as e:
                logger.error(f"Replacement of {song_id} failed: {e}")
                self.state.set_error(GENERATION_ERROR)
                raise

        # The draft may have been reordered while the call was outstanding;
        # finalize, open_for_edit or discard_draft invalidate the result.
        latest = self.state.draft
        if latest is None or latest.id != draft.id or latest.find_song(song_id) is None:
            message = "The draft changed while the replacement was running; nothing was applied."
            logger.warning(f"Dropping replacement of {song_id}: draft {draft.id} is no longer current")
            self.state.set_error(message)
            raise NotFound(message)

        updated = self.store.replace_entry(latest, song_id, entry)
        self._apply_draft(updated)
        return updated

    # Draft editing and scheduling

    def move(self, index: int, direction: Direction) -> Repertory:
        """Move a draft song one position up or down."""
        updated = self.store.reorder(self._require_draft(), index, direction)
        self._apply_draft(updated)
        return updated

    def finalize(self, service_name: str, scheduled_date: str) -> Repertory:
        """Schedule the draft for a service.

        Raises:
            NotFound: If there is no draft
            IncompleteSchedule: If name or date is blank
        """
        try:
            approved = self.store.finalize(self._require_draft(), service_name, scheduled_date)
        except IncompleteSchedule as e:
            self.state.set_error(str(e))
            raise
        self.state.set_draft(None)
        self.state.set_warnings([])
        return approved

    def open_for_edit(self, repertory_id: str) -> Repertory:
        """Load a scheduled repertory back into the draft for editing."""
        draft = self.store.open_for_edit(repertory_id)
        self._apply_draft(draft)
        return draft

    def discard_draft(self) -> None:
        self._apply_draft(None)

    def delete(self, repertory_id: str) -> bool:
        """Delete a scheduled repertory (no-op if absent)."""
        return self.store.delete(repertory_id)
