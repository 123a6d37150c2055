"""tasksync - keeps a JSONC task ledger in step with a Markdown task outline."""

# No imports at package level; import the modules directly where needed

__version__ = "0.1.0"

__all__ = [
    "accept",
    "append",
    "capabilities",
    "config",
    "discovery",
    "exceptions",
    "jsonc",
    "markdown_sync",
    "merge",
    "models",
    "outline",
    "splitter",
    "sync_logging",
    "workspace",
    "writer",
]
