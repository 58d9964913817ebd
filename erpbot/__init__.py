"""Telegram assistant for ERPNext driven by Rasa intent classification."""

__version__ = "0.1.0"
