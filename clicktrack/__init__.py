"""Tracker de clicks para encuestas: links de entrada, masked IDs y callbacks de resultado."""

__version__ = "0.1.0"
