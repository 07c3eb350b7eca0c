"""
HTTP API

FastAPI application exposing plans, profiles, reveals, outreach, source
sync and billing to the web client and external schedulers.
"""

from .app import create_app

__all__ = ["create_app"]
