"""Shared utilities: logging, configuration, failures and constants."""
