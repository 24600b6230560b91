"""Stage workflow application layer."""
