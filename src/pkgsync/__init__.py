"""Package collection synchronization and caching engine."""
