"""
Engine configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError

MAX_ITERATIONS = 100


class EngineConfig(BaseModel):
    """Settings for a RuleEngine."""

    model_config = ConfigDict(extra="forbid")

    max_iterations: int = Field(
        default=MAX_ITERATIONS,
        ge=1,
        description="Upper bound on firing passes per execute call",
    )
    duplicate_policy: Literal["reject", "replace"] = Field(
        default="reject",
        description="What add_rule does with a name that is already registered",
    )
    refraction: bool = Field(
        default=True,
        description="Suppress re-firing while a rule's condition inputs are unchanged",
    )

    @classmethod
    def coerce(cls, config: Union["EngineConfig", Dict[str, Any], None]) -> "EngineConfig":
        """Accept an EngineConfig, a plain dict, or None for defaults."""
        if config is None:
            return cls()
        if isinstance(config, cls):
            return config
        return cls.model_validate(config)


def load_config(path: Path) -> EngineConfig:
    """
    Load engine settings from a YAML file.

    The settings may sit at the top level or under an ``engine:`` key.

    Raises:
        ConfigError: If the file is missing, empty or not valid YAML.
        pydantic.ValidationError: If a setting has an invalid value.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Optional[Any] = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error: {e}") from e

    if data is None:
        raise ConfigError(f"Config file is empty: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    if "engine" in data:
        data = data["engine"] or {}

    return EngineConfig.model_validate(data)
