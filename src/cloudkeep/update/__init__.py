"""Self-update lifecycle driven by signals from the host updater."""
