"""Restricted viewer sessions."""
