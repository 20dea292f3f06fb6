"""Remote blob store access."""
