from __future__ import annotations

from copy import deepcopy
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from controlhist.config.constants import (
    DEFAULT_DIFF_COMMIT_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAPPING_FILE_SUFFIX,
    DEFAULT_SEMANTIC_DIFF_EXTENSIONS,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
)


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge updates into base without mutating inputs.

    - Keys present in updates with non-None values are merged/overwritten
    - Keys present in updates with None values are skipped (preserve base value)
    - Keys not present in updates are preserved from base
    """
    result = deepcopy(base)
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        elif key in result and value is None:
            # Treat None as "not provided" so lower layers keep their values
            continue
        else:
            result[key] = value
    return result


class AppConfig(BaseModel):
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = Field(DEFAULT_SERVER_PORT, ge=1, le=65535)

    history_limit: int = Field(DEFAULT_HISTORY_LIMIT, ge=1)
    history_diff_commits: int = Field(DEFAULT_DIFF_COMMIT_LIMIT, ge=0)
    diff_algorithm: Literal["greedy", "minimal"] = "greedy"
    mapping_file_suffix: str = DEFAULT_MAPPING_FILE_SUFFIX
    semantic_diff_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SEMANTIC_DIFF_EXTENSIONS)
    )

    log_level: str = "INFO"
    log_format: Literal["pretty", "json"] = "pretty"
    log_colors: bool = True

    model_config = ConfigDict(extra="ignore")

    @field_validator("semantic_diff_extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]


class ConfigValidationError(Exception):
    """Structured configuration validation error."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration using Pydantic schema.

    Raises:
        ConfigValidationError: With structured list of human-readable error messages.
    """
    try:
        app_config = AppConfig.model_validate(config)
    except ValidationError as e:
        raise ConfigValidationError(_extract_validation_errors(e)) from e
    # Unknown keys are kept so newer config files survive an older server
    return {**config, **app_config.model_dump(mode="json")}


def _extract_validation_errors(exc: ValidationError) -> list[str]:
    """Convert Pydantic ValidationError to list of human-readable messages."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err["loc"]) if err["loc"] else "config"
        msg = err["msg"]

        if err["type"] == "missing":
            errors.append(f"Missing required field: {loc}")
        elif err["type"] == "string_type":
            errors.append(f"Expected string at '{loc}'")
        elif err["type"] == "int_type":
            errors.append(f"Expected integer at '{loc}'")
        elif err["type"] == "bool_type":
            errors.append(f"Expected boolean at '{loc}'")
        elif err["type"] == "literal_error":
            errors.append(f"Unsupported value at '{loc}': {msg}")
        else:
            errors.append(f"{loc}: {msg}")

    return errors if errors else ["Invalid configuration"]
