"""Reborncloud Groq Bot: chat relay for Groq / OpenAI-compatible model APIs."""

__version__ = "0.1.0"
