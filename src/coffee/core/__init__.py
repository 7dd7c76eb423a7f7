"""Core: configuration, errors, filesystem helpers, locking."""
