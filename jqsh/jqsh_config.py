"""
Shell settings, read from a YAML file.

The file is taken from $JQSH_CONFIG, else ~/.jqshrc.yaml when it exists.
Every key is optional:

    prompt: "jq> "
    queue_size: 4
    prelude: true
    history_file: ~/.jqsh_history
    definitions:
      double: ". * 2"
      inc(n): ". + n"
"""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from jqsh.jqsh_channel import DEFAULT_QUEUE_SIZE

DEFAULT_PROMPT = "jqsh> "
DEFAULT_CONFIG_PATH = Path("~/.jqshrc.yaml")


class ConfigError(ValueError):
    """The config file is malformed or has unknown keys."""


@dataclass
class ShellConfig:
    prompt: str = DEFAULT_PROMPT
    queue_size: int = DEFAULT_QUEUE_SIZE
    prelude: bool = True
    history_file: Optional[str] = None
    definitions: Dict[str, str] = field(default_factory=dict)

    def definition_sources(self) -> List[str]:
        """Each `definitions` entry as a `def` statement."""
        return [f"def {head}: {body};" for head, body in self.definitions.items()]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'ShellConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        config = cls(**data)
        if not isinstance(config.prompt, str):
            raise ConfigError("prompt must be a string")
        if isinstance(config.queue_size, bool) or not isinstance(config.queue_size, int) or config.queue_size < 1:
            raise ConfigError("queue_size must be a positive integer")
        if not isinstance(config.prelude, bool):
            raise ConfigError("prelude must be true or false")
        if not isinstance(config.definitions, Mapping):
            raise ConfigError("definitions must be a mapping of name to body")
        config.definitions = {str(k): str(v) for k, v in config.definitions.items()}
        return config


def config_path(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    env = os.environ if environ is None else environ
    explicit = env.get("JQSH_CONFIG")
    if explicit:
        return Path(explicit).expanduser()
    default = DEFAULT_CONFIG_PATH.expanduser()
    return default if default.exists() else None


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> ShellConfig:
    """Reads the shell config; defaults when there is no file."""
    env = os.environ if environ is None else environ
    path = path or config_path(env)
    data: Any = {}
    if path is not None:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigError(f"config file not found: {path}")
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(data, Mapping):
            raise ConfigError(f"{path} must contain a mapping")
    config = ShellConfig.from_mapping(data)
    if env.get("JQSH_PROMPT"):
        config.prompt = env["JQSH_PROMPT"]
    return config
