"""Git-backed history and diffs for compliance control files."""

__version__ = "0.3.0"
