"""hubsync: entity ↔ Markdown file projection and atomic sync to a Git object store."""

__version__ = "0.1.0"
