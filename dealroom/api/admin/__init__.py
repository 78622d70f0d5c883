"""Room administration and diagnostics."""
