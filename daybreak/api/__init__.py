"""Shared helpers for the JSON API blueprints."""
