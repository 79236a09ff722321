# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for the watchdog query surface
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the task watchdog and scheduler status.
"""

from .routes import router, set_services
from .app import create_app

__all__ = [
    "router",
    "set_services",
    "create_app",
]
