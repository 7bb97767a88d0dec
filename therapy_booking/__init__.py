"""Availability and booking engine for a single-practitioner therapy practice."""

__version__ = "0.1.0"
