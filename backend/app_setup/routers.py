"""
Registre central des routers.
- API v1: users (signup/login), payments, promo-codes, email
- Health: health_router
"""
from fastapi import FastAPI
from backend.auth.views import api_router as users_api_router
from backend.payments import views as payments_views
from backend.promo import views as promo_views
from backend.notifications import views as notifications_views
from backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(users_api_router)
    app.include_router(payments_views.router)
    app.include_router(promo_views.router)
    app.include_router(notifications_views.router)
    # Health & monitoring
    app.include_router(health_router)
