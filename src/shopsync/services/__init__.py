"""Sync, session reconciliation, webhook and analytics services."""
