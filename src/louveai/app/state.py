"""Application state for LouveAI.

Centralizes the mutable state a shell needs to render: generator input, the
working draft, the busy flag, and the last error or quota warnings. Shells
register listeners to react to changes.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from louveai.app.logging_config import get_logger
from louveai.models import GeneratorConfig, Repertory

logger = get_logger(__name__)


@dataclass
class AppState:
    """Observable application state.

    Attributes:
        generator: Current quotas and free-text guidance
        draft: Repertory under edit (None when nothing is being edited)
        is_loading: Whether a generation is outstanding
        error_message: Last user-facing error (None when cleared)
        warnings: Non-fatal notes from the last full generation
    """

    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    draft: Optional[Repertory] = None
    is_loading: bool = False
    error_message: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    _listeners: dict[str, list[Callable]] = field(default_factory=dict, repr=False)

    def add_listener(self, property_name: str, callback: Callable) -> None:
        """Add a listener for a property change.

        Args:
            property_name: Name of the property to watch
            callback: Function to call with the new value
        """
        self._listeners.setdefault(property_name, []).append(callback)

    def remove_listener(self, property_name: str, callback: Callable) -> None:
        """Remove a property change listener."""
        if property_name in self._listeners:
            self._listeners[property_name] = [
                cb for cb in self._listeners[property_name] if cb != callback
            ]

    def _notify(self, property_name: str, value) -> None:
        for callback in self._listeners.get(property_name, []):
            try:
                callback(value)
            except Exception:
                logger.exception(f"Listener for '{property_name}' failed")

    def set_draft(self, draft: Optional[Repertory]) -> None:
        """Replace the working draft (None to clear)."""
        self.draft = draft
        self._notify("draft", draft)

    def set_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._notify("is_loading", loading)

    def set_error(self, message: Optional[str]) -> None:
        """Set error message (None to clear)."""
        self.error_message = message
        self._notify("error_message", message)

    def clear_error(self) -> None:
        self.set_error(None)

    def set_warnings(self, warnings: list[str]) -> None:
        self.warnings = list(warnings)
        self._notify("warnings", self.warnings)
