"""
FastAPI service for the sales alert engine.

Provides:
- GET/POST /cron/evaluate-alerts, /cron/hourly-check - Scheduled sweeps
- GET/PATCH /alerts/{id}, GET /alerts - Ledger history and acknowledgement
- POST /alerts/test - Test notification
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
