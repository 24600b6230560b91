"""Stage workflow domain layer."""
