"""
Gestionnaires d'exceptions.
- HTTPException: corps JSON {"detail": ...} lu tel quel par le client d'adhésion.
- Exception non prévue: journalisée, 500 générique (aucun détail interne exposé).
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_json(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_json(request: Request, exc: Exception):
        logger.exception("Erreur non gérée %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
