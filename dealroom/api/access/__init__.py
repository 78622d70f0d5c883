"""Access decisions, browsing and invites."""
