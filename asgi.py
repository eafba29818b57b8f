"""
asgi.py -- ASGI entry point for the SSO service.

Builds the app from the process Settings (environment + CONFIG file) and
configures logging for the environment tier.

Run with:  uvicorn asgi:app
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings
from core.logging import setup_logging

settings = get_settings()
setup_logging(settings.env)
app = create_app(settings)
