"""Local web chat client and streaming relay for Ollama."""

__version__ = "1.1.0"
