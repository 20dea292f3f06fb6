"""cloudkeep — configuration backups to a remote blob store and self-update lifecycle."""

__version__ = "0.3.0"
