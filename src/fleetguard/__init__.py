"""Fleetguard - authorization resolution for multi-tenant fleet compliance records."""

__version__ = "0.1.0"
