"""Default configuration values for the control history service."""

from typing import Any

from controlhist.config.constants import (
    DEFAULT_DIFF_ALGORITHM,
    DEFAULT_DIFF_COMMIT_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAPPING_FILE_SUFFIX,
    DEFAULT_SEMANTIC_DIFF_EXTENSIONS,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
)


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    return {
        # Server Configuration
        "server_host": DEFAULT_SERVER_HOST,
        "server_port": DEFAULT_SERVER_PORT,
        # History
        "history_limit": DEFAULT_HISTORY_LIMIT,
        "history_diff_commits": DEFAULT_DIFF_COMMIT_LIMIT,
        "diff_algorithm": DEFAULT_DIFF_ALGORITHM,
        # Files named <control>-mappings.yaml hold a list of mapping records
        "mapping_file_suffix": DEFAULT_MAPPING_FILE_SUFFIX,
        "semantic_diff_extensions": list(DEFAULT_SEMANTIC_DIFF_EXTENSIONS),
        # Logging Configuration
        "log_level": "INFO",
        "log_format": "pretty",
        "log_colors": True,
    }
