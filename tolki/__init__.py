"""Conversation history and command state engine for the Tolki chat widget."""

__version__ = "0.3.0"
