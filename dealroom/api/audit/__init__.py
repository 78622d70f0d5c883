"""Audit trail queries, reports and export."""
