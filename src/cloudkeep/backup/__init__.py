"""Configuration backups: envelope codec and transfer orchestration."""
