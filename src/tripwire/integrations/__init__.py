"""Integrations that report events from other frameworks."""
