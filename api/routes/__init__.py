"""
API Routes for the RadioCare chatbot.
"""

from . import chat, coverage, alerts

__all__ = ["chat", "coverage", "alerts"]
