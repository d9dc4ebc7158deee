"""
Project configuration: .codereports/config.yaml

    version: 1
    tags:
      todo:     {enabled: true, severity: low}
      refactor: {enabled: true, severity: medium, expires: 180}
      buggy:    {enabled: true, severity: high, expires: 90}
      critical: {enabled: true, severity: blocking, expires: 14}

Unknown tags are rejected when adding a report; `expires` is a number of days
after creation.
"""
from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from codereport.core.errors import ConfigError

CONFIG_VERSION = 1
CODEREPORTS_DIR = ".codereports"
CONFIG_FILENAME = "config.yaml"
SCHEMA_FILENAME = "schema.json"


class Tag(str, Enum):
    TODO = "todo"
    REFACTOR = "refactor"
    BUGGY = "buggy"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: str) -> "Tag":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigError(f"unknown tag: {value}") from None


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKING = "blocking"

    @classmethod
    def parse(cls, value: str) -> "Severity":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigError(f"unknown severity: {value}") from None


class TagConfig(BaseModel):
    enabled: bool
    severity: str
    expires: Optional[int] = None


class Config(BaseModel):
    version: int
    tags: Dict[str, TagConfig] = Field(default_factory=dict)


def codereports_dir(repo_root: Path) -> Path:
    return repo_root / CODEREPORTS_DIR


def config_path(repo_root: Path) -> Path:
    return codereports_dir(repo_root) / CONFIG_FILENAME


def load_config(repo_root: Path) -> Config:
    path = config_path(repo_root)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError("config not found. Run 'codereport init' first.") from None
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}") from e

    try:
        cfg = Config.model_validate(yaml.safe_load(content))
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigError(f"invalid config.yaml: {e}") from e

    if cfg.version != CONFIG_VERSION:
        raise ConfigError(f"unsupported config version: {cfg.version} (expected {CONFIG_VERSION})")
    for name, tc in cfg.tags.items():
        try:
            Severity.parse(tc.severity)
        except ConfigError as e:
            raise ConfigError(f"tag '{name}': {e}") from None
    return cfg


def default_config() -> Config:
    return Config(
        version=CONFIG_VERSION,
        tags={
            Tag.TODO.value: TagConfig(enabled=True, severity=Severity.LOW.value),
            Tag.REFACTOR.value: TagConfig(enabled=True, severity=Severity.MEDIUM.value, expires=180),
            Tag.BUGGY.value: TagConfig(enabled=True, severity=Severity.HIGH.value, expires=90),
            Tag.CRITICAL.value: TagConfig(enabled=True, severity=Severity.BLOCKING.value, expires=14),
        },
    )


def write_default_config(repo_root: Path) -> None:
    path = config_path(repo_root)
    text = yaml.safe_dump(default_config().model_dump(), sort_keys=False)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"write config: {e}") from e


def validate_tag_for_add(config: Config, tag: str) -> Tag:
    parsed = Tag.parse(tag)
    tc = config.tags.get(parsed.value)
    if tc is None:
        raise ConfigError(f"tag '{parsed.value}' is not defined in config")
    if not tc.enabled:
        raise ConfigError(f"tag '{parsed.value}' is disabled in config")
    return parsed


def expires_days(config: Config, tag: Tag) -> Optional[int]:
    tc = config.tags.get(tag.value)
    return tc.expires if tc else None


def severity(config: Config, tag: Tag) -> Severity:
    tc = config.tags.get(tag.value)
    if tc is None:
        raise ConfigError(f"tag '{tag.value}' not in config")
    return Severity.parse(tc.severity)


def default_schema_json() -> str:
    """JSON Schema for reports.yaml, written next to it for editor tooling."""
    schema = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "codereport reports",
        "type": "object",
        "required": ["version", "entries"],
        "properties": {
            "version": {"type": "integer", "const": 1},
            "entries": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": [
                        "id", "path", "range", "tag", "message",
                        "author", "created_at", "status",
                    ],
                    "properties": {
                        "id": {"type": "string", "pattern": "^CR-[0-9]{6}$"},
                        "path": {"type": "string"},
                        "range": {
                            "type": "object",
                            "required": ["start", "end"],
                            "properties": {
                                "start": {"type": "integer", "minimum": 1},
                                "end": {"type": "integer", "minimum": 1},
                            },
                        },
                        "tag": {"type": "string", "enum": [t.value for t in Tag]},
                        "message": {"type": "string"},
                        "author": {
                            "type": "object",
                            "properties": {
                                "git": {"type": ["string", "null"]},
                                "codeowner": {"type": ["string", "null"]},
                            },
                        },
                        "created_at": {"type": "string", "format": "date"},
                        "expires_at": {"type": ["string", "null"], "format": "date"},
                        "status": {"type": "string", "enum": ["open", "resolved"]},
                    },
                },
            },
        },
    }
    return json.dumps(schema, indent=2) + "\n"
