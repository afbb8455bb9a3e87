"""Shared utilities: logging, errors and process execution."""
