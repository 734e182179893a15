"""Persistence layer: async engine, models and repositories."""
