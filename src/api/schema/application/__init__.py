"""Schema application layer."""
