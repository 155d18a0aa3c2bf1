"""Hard-coded configuration constants not meant to be user-configurable."""

DEFAULT_SERVER_HOST = "localhost"
DEFAULT_SERVER_PORT = 8777

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_DIFF_COMMIT_LIMIT = 5
DEFAULT_DIFF_ALGORITHM = "greedy"
DEFAULT_MAPPING_FILE_SUFFIX = "-mappings.yaml"
DEFAULT_SEMANTIC_DIFF_EXTENSIONS = (".yaml", ".yml")

# Synthetic record for uncommitted working tree changes
PENDING_HASH = "pending"
PENDING_AUTHOR = "You"
PENDING_MESSAGE = "Uncommitted modifications"

CONFIG_DIR_NAME = ".controlhist"
ENV_PREFIX = "CONTROLHIST_"
