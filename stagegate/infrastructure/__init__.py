"""Infrastructure layer: persistence, adapters, clock and logging."""
