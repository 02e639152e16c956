"""Gemini understanding service."""
from .service import GeminiService

__all__ = ["GeminiService"]
