"""Session tokens and project permissions."""
