"""Staircase HTTP load testing with live, schema-stable metrics export."""

__version__ = "0.1.0"
