"""ASGI entry point for Azure Web App deployment.

Azure Web App looks for an 'app' variable in the application module.
This module provides the FastAPI application instance; the package must be
installed (``pip install .``).

Usage:
    - Azure: uvicorn app:app --host 0.0.0.0 --port 8000
    - Local: uvicorn app:app --reload
"""

from projectflow_api.main import create_app

# Azure Web App expects 'app' variable
app = create_app()
