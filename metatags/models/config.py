"""Configuration model for the MetaTags vault."""

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import yaml
from dotenv import load_dotenv


CONFIG_FILENAME = ".metatags.yaml"
DEFAULT_TAG_BASE = "mt"


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def normalize_folder(folder: str | None) -> str | None:
    """Normalize a vault-relative folder to a POSIX path without slashes at the ends.

    Returns None for empty values ("" or "/"), which means "not configured".
    """
    if folder is None:
        return None
    cleaned = folder.replace("\\", "/").strip().strip("/")
    if not cleaned or cleaned == ".":
        return None
    return str(PurePosixPath(cleaned))


@dataclass
class MetaTagsSettings:
    """Settings consumed by the sync engine."""

    tag_base: str = DEFAULT_TAG_BASE
    # Vault-relative folder holding templates; None means "templates carry the base tag"
    template_folder: str | None = None
    prune_empty_on_remove: bool = False
    debounce_seconds: float = 0.5
    recent_write_window: float = 2.0
    state_file: str | None = ".metatags-state.json"
    verbose: bool = False

    def __post_init__(self) -> None:
        self.tag_base = self.tag_base.strip().lstrip("#").strip("/")
        if not self.tag_base:
            raise ValueError("tag_base must not be empty")
        self.template_folder = normalize_folder(self.template_folder)

    @property
    def ignored_keys(self) -> set[str]:
        """Frontmatter keys never copied from or diffed between templates."""
        return {"tags", self.tag_base}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        return {
            "tag_base": self.tag_base,
            "template_folder": self.template_folder,
            "prune_empty_on_remove": self.prune_empty_on_remove,
            "debounce_seconds": self.debounce_seconds,
            "recent_write_window": self.recent_write_window,
            "state_file": self.state_file,
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetaTagsSettings":
        """Create from dictionary."""
        return cls(
            tag_base=str(data.get("tag_base") or DEFAULT_TAG_BASE),
            template_folder=data.get("template_folder"),
            prune_empty_on_remove=bool(data.get("prune_empty_on_remove", False)),
            debounce_seconds=float(data.get("debounce_seconds", 0.5)),
            recent_write_window=float(data.get("recent_write_window", 2.0)),
            state_file=data.get("state_file", ".metatags-state.json"),
            verbose=bool(data.get("verbose", False)),
        )

    @classmethod
    def load(cls, config_path: Path, use_env: bool = True) -> "MetaTagsSettings":
        """Load settings from a YAML file, falling back to defaults if it is missing.

        Args:
            config_path: Path to .metatags.yaml
            use_env: Apply METATAGS_* environment overrides (after loading .env)

        Returns:
            Loaded settings

        Raises:
            ValueError: If the file does not hold a mapping or a value is invalid
        """
        data: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"Expected a mapping in {config_path}")
            data = loaded or {}

        if use_env:
            load_dotenv()
            data = apply_env_overrides(data)

        return cls.from_dict(data)

    def save(self, config_path: Path) -> None:
        """Save settings to a YAML file."""
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def resolve_state_file(self, vault_root: Path) -> Path | None:
        """Absolute path of the state file, or None when persistence is off."""
        if not self.state_file:
            return None
        path = Path(self.state_file)
        return path if path.is_absolute() else vault_root / path


def apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of data with METATAGS_* environment variables applied."""
    merged = dict(data)

    tag_base = os.getenv("METATAGS_TAG_BASE")
    if tag_base:
        merged["tag_base"] = tag_base

    folder = os.getenv("METATAGS_TEMPLATE_FOLDER")
    if folder is not None:
        merged["template_folder"] = folder or None

    prune = os.getenv("METATAGS_PRUNE_EMPTY")
    if prune is not None:
        merged["prune_empty_on_remove"] = _as_bool(prune)

    return merged
