"""
Bridge Configuration
====================

Settings for the parsing worker and the request bridge.

Values come from an optional JSON file, overlaid by environment
variables prefixed with ``CASEDASH_`` (e.g. ``CASEDASH_PARSER_TARGET``).
Keyword arguments passed to `BridgeSettings` win over both.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Tuple, Type

from pydantic import Field, PositiveFloat, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


ENV_PREFIX = "CASEDASH_"

DEFAULT_PARSER_TARGET = "casedash.matpower:parse_case"


class BridgeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        json_file=None,
        json_file_encoding="utf-8",
    )

    parser_target: str = Field(
        DEFAULT_PARSER_TARGET,
        description=(
            "Parser entry point as 'package.module:function', or "
            "'/path/to/module.py:function' for a module shipped as a file."
        ),
    )
    start_method: Literal["spawn", "fork", "forkserver"] = Field(
        "spawn", description="multiprocessing start method for the worker process."
    )
    log_level: str = Field("INFO", description="Log level for both processes.")
    join_timeout_s: PositiveFloat = Field(
        5.0, description="Seconds to wait for the worker to exit on close()."
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win: kwargs, then CASEDASH_* variables, then the JSON file
        return init_settings, env_settings, JsonConfigSettingsSource(settings_cls)

    @field_validator("parser_target")
    @classmethod
    def _has_entry_point(cls, v: str) -> str:
        module, sep, func = v.rpartition(":")
        if not sep or not module or not func:
            raise ValueError("parser_target must look like 'module:function'")
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(path: Optional[str] = None) -> BridgeSettings:
    """
    Load bridge settings.

    Args:
        path: Optional JSON file with settings

    Returns:
        Validated BridgeSettings

    Raises:
        FileNotFoundError: If `path` does not exist
        json.JSONDecodeError: If the file is not valid JSON
        pydantic.ValidationError: If a value is invalid
    """
    if not path:
        return BridgeSettings()

    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Settings file not found: {path}")

    class _FileSettings(BridgeSettings):
        model_config = SettingsConfigDict(json_file=p)

    return _FileSettings()
