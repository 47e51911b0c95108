"""
Ollama Adapter - local LLM client.
"""

from .client import OllamaClient

__all__ = ["OllamaClient"]
