"""Shared utilities for the core layer."""
