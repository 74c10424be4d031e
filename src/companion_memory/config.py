"""Environment-driven settings for the companion application."""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from .models.config import MemoryConfig, TriggerConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "~/.companion-memory"


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class Settings:
    """Application settings resolved from environment variables."""

    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR).expanduser())
    provider: str = "ollama"
    assistant_name: str = "Alex"
    memory_config: MemoryConfig = field(default_factory=MemoryConfig)
    trigger_config: TriggerConfig = field(default_factory=TriggerConfig)
    system_prompt_file: Optional[Path] = None
    summary_prompt_file: Optional[Path] = None
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Read COMPANION_* variables, keeping defaults for unset ones.

        Raises:
            ValueError: If a variable has an invalid value.
        """
        memory_config = MemoryConfig.preset(os.getenv("COMPANION_MEMORY_PRESET", "standard"))

        trigger_changes = {}
        threshold = _env_int("COMPANION_SUMMARY_THRESHOLD")
        if threshold is not None:
            trigger_changes["initial_threshold"] = threshold
        update_threshold = _env_int("COMPANION_SUMMARY_UPDATE_THRESHOLD")
        if update_threshold is not None:
            trigger_changes["update_threshold"] = update_threshold
        interval = _env_int("COMPANION_SUMMARY_INTERVAL_MINUTES")
        if interval is not None:
            trigger_changes["summarization_interval"] = timedelta(minutes=interval)
        trigger_config = TriggerConfig(**trigger_changes)

        system_prompt_file = os.getenv("COMPANION_SYSTEM_PROMPT_FILE")
        summary_prompt_file = os.getenv("COMPANION_SUMMARY_PROMPT_FILE")

        return cls(
            data_dir=Path(os.getenv("COMPANION_DATA_DIR", DEFAULT_DATA_DIR)).expanduser(),
            provider=os.getenv("COMPANION_PROVIDER", "ollama").lower(),
            assistant_name=os.getenv("COMPANION_ASSISTANT_NAME", "Alex"),
            memory_config=memory_config,
            trigger_config=trigger_config,
            system_prompt_file=Path(system_prompt_file) if system_prompt_file else None,
            summary_prompt_file=Path(summary_prompt_file) if summary_prompt_file else None,
            debug=bool(os.getenv("COMPANION_DEBUG")),
        )
