"""
API Module for the RadioCare chatbot.

FastAPI application with routes for:
- Chat interactions and the context catalog
- Coverage (benefit account) management
- Clinician alerts
"""

from .main import create_app, app

__all__ = ["create_app", "app"]
