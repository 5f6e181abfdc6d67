"""Provides Flask integration for the Zoints API."""
