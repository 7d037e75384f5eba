"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from getaways.api.routes import auth, bookings, payments, webhooks

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
