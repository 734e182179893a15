"""Shared utilities: config, logging, exceptions, retry."""
