"""
ASGI entrypoint de l'API d'adhésion: `uvicorn backend.asgi:app`.
En local, préférer `python -m backend` (voir backend/__main__.py).
"""

from backend.app import app

__all__ = ["app"]
