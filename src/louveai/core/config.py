"""Configuration management for LouveAI.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/louveai/config.toml
- Linux: ~/.config/louveai/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\louveai\\config.toml

The liturgical category catalog lives in the same file, so each deployment
can ship its own closed, ordered set of slots.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import tomllib
import tomli_w


DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_API_BASE = "https://openrouter.ai/api/v1"
DEFAULT_LANGUAGE = "Português Brasileiro"
DEFAULT_RECENT_WINDOW_DAYS = 30

MS_PER_DAY = 24 * 60 * 60 * 1000
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_config_dir() -> Path:
    """Get the platform-specific config directory.

    Returns:
        Path to the config directory for louveai.
    """
    if sys.platform == "darwin" or sys.platform == "linux":
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / "louveai"
        return Path.home() / ".config" / "louveai"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "louveai"
        return Path.home() / "AppData" / "Roaming" / "louveai"
    else:
        return Path.home() / ".config" / "louveai"


def get_config_path() -> Path:
    """Get the path to the config.toml file.

    Returns:
        Path to config.toml
    """
    return get_config_dir() / "config.toml"


def get_default_db_path() -> Path:
    """Get the default path of the SQLite slot store."""
    return get_config_dir() / "louveai.db"


@dataclass(frozen=True)
class Category:
    """A liturgical slot in the service.

    Attributes:
        key: Stable identifier used in quotas and persisted entries
        label: Display label, also shown to the model
    """

    key: str
    label: str

    def __str__(self) -> str:
        return self.label


class CategoryCatalog:
    """Closed, ordered set of categories for one deployment."""

    def __init__(self, categories: list[Category]):
        if not categories:
            raise ValueError("At least one category must be configured")

        keys = [c.key for c in categories]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate category keys in configuration: {keys}")

        self._categories = tuple(categories)
        self._by_key = {c.key: c for c in self._categories}

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    @property
    def keys(self) -> list[str]:
        return list(self._by_key)

    def get(self, key: str) -> Category:
        """Get a category by key.

        Raises:
            KeyError: If the key is not part of this catalog
        """
        try:
            return self._by_key[key]
        except KeyError:
            raise KeyError(f"Unknown category: {key}") from None

    def resolve(self, value: str) -> Optional[Category]:
        """Match a free-form category string against keys and labels.

        Matching is case-insensitive and ignores surrounding whitespace.

        Args:
            value: Category name as returned by the model or typed by a user

        Returns:
            Matching Category, or None if nothing matches
        """
        needle = value.strip().casefold()
        if not needle:
            return None
        for category in self._categories:
            if needle in (category.key.casefold(), category.label.casefold()):
                return category
        return None


DEFAULT_CATEGORIES = [
    Category("caminho", "1ª Porta: O Caminho (Átrio/Celebração)"),
    Category("verdade", "2ª Porta: A Verdade (Lugar Santo/Adoração)"),
    Category("vida", "3ª Porta: A Vida (Santo dos Santos/Intimidade)"),
    Category("harpa", "Harpa Cristã"),
    Category("gratidao", "Gratidão e Ações de Graças"),
    Category("outros", "Outros (Avivamento/Missões)"),
]

DEFAULT_LITURGY = [
    "ABERTURA (Harpa Cristã): hinos tradicionais para iniciar o culto.",
    "LOUVOR PRINCIPAL (Jornada do Tabernáculo): O Caminho (Átrio) com celebração e gratidão, "
    "A Verdade (Lugar Santo) com santidade e Palavra, "
    "A Vida (Santo dos Santos) com intimidade e glória.",
    "DÍZIMOS E OFERTAS: músicas de gratidão, fidelidade e entrega.",
]


@dataclass
class AppConfig:
    """Configuration for LouveAI.

    Attributes:
        model: LLM model identifier on the OpenAI-compatible endpoint
        api_base: Base URL of the OpenAI-compatible endpoint
        temperature: Sampling temperature for generation
        timeout_seconds: Timeout applied by the generation client
        language: Output language requested from the model
        recent_window_days: Trailing window for the anti-repetition check
        global_prompt: Default free-text guidance for every generation
        category_counts: Default quota per category key
        liturgy: Fixed liturgical ordering, one stage per line (may be empty)
        categories: Ordered category catalog for this deployment
        db_path: SQLite file backing the slot store
        log_dir: Directory for session logs
        log_level: Level name for the session log (DEBUG, INFO, ...)
    """

    # Model
    model: str = DEFAULT_MODEL
    api_base: str = DEFAULT_API_BASE
    temperature: float = 0.8
    timeout_seconds: float = 60.0

    # Generation
    language: str = DEFAULT_LANGUAGE
    recent_window_days: int = DEFAULT_RECENT_WINDOW_DAYS
    global_prompt: str = ""
    category_counts: dict[str, int] = field(
        default_factory=lambda: {"caminho": 2, "verdade": 2}
    )
    liturgy: list[str] = field(default_factory=lambda: list(DEFAULT_LITURGY))
    categories: list[Category] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    # Storage
    db_path: Path = field(default_factory=get_default_db_path)
    log_dir: Path = field(default_factory=lambda: get_config_dir() / "logs")
    log_level: str = "DEBUG"

    @property
    def catalog(self) -> CategoryCatalog:
        """Category catalog built from the configured categories."""
        return CategoryCatalog(self.categories)

    @property
    def recent_window_ms(self) -> int:
        """Anti-repetition window in milliseconds."""
        return self.recent_window_days * MS_PER_DAY

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            AppConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the category catalog or quotas are invalid
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        if "model" in data:
            model = data["model"]
            config.model = model.get("name", config.model)
            config.api_base = model.get("api_base", config.api_base)
            config.temperature = float(model.get("temperature", config.temperature))
            config.timeout_seconds = float(model.get("timeout_seconds", config.timeout_seconds))

        if "generation" in data:
            gen = data["generation"]
            config.language = gen.get("language", config.language)
            config.recent_window_days = int(gen.get("recent_window_days", config.recent_window_days))
            config.global_prompt = gen.get("global_prompt", config.global_prompt)
            config.liturgy = list(gen.get("liturgy", config.liturgy))
            if "category_counts" in gen:
                config.category_counts = {
                    key: int(count) for key, count in gen["category_counts"].items()
                }

        if "categories" in data:
            config.categories = [
                Category(key=str(entry["key"]), label=str(entry["label"]))
                for entry in data["categories"]
            ]

        if "storage" in data:
            storage = data["storage"]
            if storage.get("db_path"):
                config.db_path = Path(storage["db_path"])
            if storage.get("log_dir"):
                config.log_dir = Path(storage["log_dir"])

        if "logging" in data:
            config.log_level = str(data["logging"].get("level", config.log_level))

        # Environment variables take precedence
        env_model = os.environ.get("LOUVEAI_MODEL")
        if env_model:
            config.model = env_model

        env_api_base = os.environ.get("LOUVEAI_API_BASE")
        if env_api_base:
            config.api_base = env_api_base

        env_db_path = os.environ.get("LOUVEAI_DB_PATH")
        if env_db_path:
            config.db_path = Path(env_db_path)

        env_log_level = os.environ.get("LOUVEAI_LOG_LEVEL")
        if env_log_level:
            config.log_level = env_log_level

        config.validate()
        return config

    def validate(self) -> None:
        """Validate catalog and quotas.

        Raises:
            ValueError: If categories are empty/duplicated, a quota is negative
                or the log level is unknown
        """
        CategoryCatalog(self.categories)
        for key, count in self.category_counts.items():
            if count < 0:
                raise ValueError(f"Quota for '{key}' must not be negative (got {count})")
        if self.recent_window_days < 0:
            raise ValueError("recent_window_days must not be negative")
        if self.log_level.strip().upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{self.log_level}'. Valid: {', '.join(LOG_LEVELS)}")

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "model": {
                "name": self.model,
                "api_base": self.api_base,
                "temperature": self.temperature,
                "timeout_seconds": self.timeout_seconds,
            },
            "generation": {
                "language": self.language,
                "recent_window_days": self.recent_window_days,
                "global_prompt": self.global_prompt,
                "liturgy": list(self.liturgy),
                "category_counts": dict(self.category_counts),
            },
            "storage": {
                "db_path": str(self.db_path),
                "log_dir": str(self.log_dir),
            },
            "logging": {"level": self.log_level},
            "categories": [{"key": c.key, "label": c.label} for c in self.categories],
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)


def ensure_config_exists(path: Optional[Path] = None) -> AppConfig:
    """Load the config file, creating a default one if needed.

    Args:
        path: Path to config file (defaults to standard location)

    Returns:
        AppConfig instance
    """
    config_path = path or get_config_path()

    if config_path.exists():
        try:
            return AppConfig.load(config_path)
        except (tomllib.TOMLDecodeError, ValueError, KeyError, TypeError):
            # Corrupted config: fall back to a fresh default
            pass

    config = AppConfig()
    config.save(config_path)
    return config
