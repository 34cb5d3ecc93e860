import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from mdcouncil_core.models import Reviewer

DEFAULT_CONFIG: dict = {
    "ollama_url": "http://localhost:11434",
    # Global writing sampling settings. Reviewers and the editor run cooler
    # than this (see the *_temperature_offset keys).
    "temperature": 0.7,
    "top_p": 0.9,
    "top_k": 40,
    "num_predict": 2048,
    "analysis_temperature_offset": 0.2,
    "synthesis_temperature_offset": 0.1,
    "temperature_floor": 0.1,
    "max_retries": 1,  # total attempts per reviewer call; 1 = no retry
    "list_timeout": 5.0,
    "load_timeout": 300.0,
    "generate_timeout": 600.0,
    "unload_settle_seconds": 0.5,
    "swap_settle_seconds": 1.0,
    "synthesis_char_limit": 3000,
    "execution_mode": "sequential",  # "sequential" | "parallel"
    "group_by_model": True,
    "reviewers": None,  # None = use the built-in roster
    "store": "noop",
}

EXECUTION_MODES = ("sequential", "parallel")

BUILTIN_PRESETS_DIR = Path(__file__).parent / "presets"
_BUILTIN_ROSTER = BUILTIN_PRESETS_DIR / "reviewers.yml"


def load_config(config_path: str = ".mdcouncil.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .mdcouncil.yml in the current directory
      3. CLI argument overrides
    The OLLAMA_HOST environment variable wins over everything for the gateway URL.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    host = os.environ.get("OLLAMA_HOST")
    if host:
        config["ollama_url"] = host if "://" in host else f"http://{host}"

    if config.get("execution_mode") not in EXECUTION_MODES:
        raise ValueError(
            f"Unknown execution_mode: {config.get('execution_mode')!r}. Choose 'sequential' or 'parallel'."
        )

    return config


def load_reviewers(config: dict) -> list[Reviewer]:
    """
    Load the reviewer roster.

    Uses the ``reviewers`` list from config when present, otherwise the
    built-in roster shipped with the package.
    """
    entries = config.get("reviewers")
    if entries is None:
        if not _BUILTIN_ROSTER.exists():
            raise FileNotFoundError("No reviewers configured and built-in roster is missing.")
        entries = yaml.safe_load(_BUILTIN_ROSTER.read_text(encoding="utf-8")) or []

    reviewers = [Reviewer.from_dict(entry) for entry in entries]

    seen: set[str] = set()
    for reviewer in reviewers:
        if reviewer.id in seen:
            raise ValueError(f"Duplicate reviewer id: {reviewer.id!r}")
        seen.add(reviewer.id)

    editors = [r.id for r in reviewers if r.is_editor and r.enabled]
    if len(editors) > 1:
        raise ValueError(f"Only one enabled editor is allowed, found: {', '.join(editors)}")

    return reviewers


@dataclass
class ReviewSettings:
    """Typed view of the config keys the review pipeline reads."""

    temperature: float = DEFAULT_CONFIG["temperature"]
    top_p: float = DEFAULT_CONFIG["top_p"]
    top_k: int = DEFAULT_CONFIG["top_k"]
    num_predict: int = DEFAULT_CONFIG["num_predict"]
    analysis_temperature_offset: float = DEFAULT_CONFIG["analysis_temperature_offset"]
    synthesis_temperature_offset: float = DEFAULT_CONFIG["synthesis_temperature_offset"]
    temperature_floor: float = DEFAULT_CONFIG["temperature_floor"]
    max_retries: int = DEFAULT_CONFIG["max_retries"]
    generate_timeout: float = DEFAULT_CONFIG["generate_timeout"]
    load_timeout: float = DEFAULT_CONFIG["load_timeout"]
    unload_settle_seconds: float = DEFAULT_CONFIG["unload_settle_seconds"]
    swap_settle_seconds: float = DEFAULT_CONFIG["swap_settle_seconds"]
    synthesis_char_limit: int = DEFAULT_CONFIG["synthesis_char_limit"]
    execution_mode: str = DEFAULT_CONFIG["execution_mode"]
    group_by_model: bool = DEFAULT_CONFIG["group_by_model"]

    @classmethod
    def from_config(cls, config: dict) -> "ReviewSettings":
        values = {name: config[name] for name in cls.__dataclass_fields__ if config.get(name) is not None}
        return cls(**values)

    def sampling_options(self, temperature_offset: float) -> dict:
        """Ollama ``options`` block, cooled by ``temperature_offset``."""
        return {
            "temperature": max(self.temperature_floor, round(self.temperature - temperature_offset, 4)),
            "top_p": self.top_p,
            "top_k": self.top_k,
            "num_predict": self.num_predict,
        }
