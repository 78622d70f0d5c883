"""Service singletons and background workers for the DEALROOM API."""
