"""Command-line tools for the Discord log importer.

Available tools:
- importer_status: Summarize an import state file
"""

__all__ = [
    "importer_status",
]
