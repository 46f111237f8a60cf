"""Configuration management for linkshelf."""

from __future__ import annotations

import difflib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import DEFAULT_ALLOWED_ROOTS, LinkshelfConfig, LLMSettings
from .resolver import ENV_PREFIX, flatten_for_env, overrides_from_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.linkshelf/config.yaml")
STAMP_PREFIX = "# Last updated: "

_HEADER = (
    "# linkshelf configuration file\n"
    "# Manage with `linkshelf config set KEY --value VALUE` or edit by hand.\n"
    f"# Environment variables named {ENV_PREFIX}SECTION__KEY override these values.\n"
)
_SECTION_NOTES = {
    "paths": "Flat source root and symlink target root; the ledger defaults to "
    "<target>/.linkshelf/ledger.db.",
    "organization": "Category folders every symlink path must start with.",
    "processing": "How the source root is listed.",
    "sync": "Dry-run mode, minutes between passes, and the reclassify policy (all or new).",
    "llm": "Model used to categorize source entries.",
    "logging": "Console level and the rotating log file under <target>/.linkshelf.",
    "cli": "Command line defaults.",
}


class ConfigManager:
    """Read, validate and update the linkshelf YAML configuration file.

    Values resolve as defaults < file < ``LINKSHELF__`` environment variables <
    command line overrides. The file is created with every default the first
    time it is needed.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> LinkshelfConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Values keyed by dotted path (``sync.dry_run``).
            include_env: Whether ``LINKSHELF__`` variables are applied.
            env_overrides: Environment to scan instead of the process environment.

        Raises:
            ConfigError: If the file cannot be parsed or a value is invalid.
        """
        self.ensure_exists()
        env_data = None
        if include_env:
            env_data = overrides_from_env(env_overrides if env_overrides is not None else self._env)
        return resolve_with_precedence(
            defaults=LinkshelfConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_data or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        text = self.read_text()
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return data

    def save(self, config: LinkshelfConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to the configuration file."""
        if isinstance(config, LinkshelfConfig):
            data = config.model_dump(mode="json")
        else:
            data = dict(config)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(render_config(data), encoding="utf-8")

    def ensure_exists(self) -> Path:
        """Create the configuration file with defaults unless it already exists."""
        if not self._config_path.exists():
            self.save(LinkshelfConfig())
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def set_value(self, key: str, raw_value: str) -> list[str]:
        """Persist one dotted ``key`` after validating the resulting configuration.

        Args:
            key: Dotted path such as ``sync.interval_minutes``.
            raw_value: YAML literal to store.

        Returns:
            list[str]: Unified diff of the file, empty when nothing changed.

        Raises:
            ConfigError: If the key or value is malformed or fails validation.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("KEY must specify a dotted path such as 'sync.dry_run'.")
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse value: {exc}") from exc

        self.ensure_exists()
        before = self.read_text()
        data = self.load_file_overrides()
        node = data
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"Cannot assign into '{segment}' because it is not a mapping "
                    "in the config file."
                )
            node = child
        node[segments[-1]] = value
        resolve_with_precedence(defaults=LinkshelfConfig(), file_overrides=data)

        self.save(data)
        return list(
            difflib.unified_diff(
                _without_stamp(before),
                _without_stamp(self.read_text()),
                fromfile="config.yaml (before)",
                tofile="config.yaml (after)",
                lineterm="",
            )
        )


def render_config(data: Mapping[str, Any]) -> str:
    """Render ``data`` as YAML with a header and a comment above each section."""
    stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    blocks = [_HEADER + STAMP_PREFIX + stamp + "\n"]
    for section, value in data.items():
        block = yaml.safe_dump({section: value}, sort_keys=False)
        note = _SECTION_NOTES.get(section)
        blocks.append(f"# {note}\n{block}" if note else block)
    return "\n".join(blocks)


def _without_stamp(text: str) -> list[str]:
    return [line for line in text.splitlines() if not line.startswith(STAMP_PREFIX)]


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_ALLOWED_ROOTS",
    "LinkshelfConfig",
    "LLMSettings",
    "resolve_with_precedence",
    "flatten_for_env",
    "overrides_from_env",
    "render_config",
    "ConfigError",
]
