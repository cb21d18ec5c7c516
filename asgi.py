"""
asgi.py -- ASGI entry point for the login service.

Run with:  uvicorn asgi:app --port 8081
           python main.py serve

The app object is built here, once, from the environment-backed settings.
Tests build their own apps with create_app() and fake AWS/AMQP boundaries.
"""

from api.main import create_app

app = create_app()
