"""
asgi.py -- Application assembly for meetai.

This is the ONLY file that imports from both api/ and web/. api/main.py knows
nothing about web/; web/routes.py reaches the API only over HTTP through
web.auth_client.

Run with:  uvicorn asgi:app --reload --port 3000
"""

from api.main import app
from web.routes import router as web_router

# Mount the web UI router here, not in api/main.py.
app.include_router(web_router, tags=["Web UI"])
