"""
Main API router.
"""

from fastapi import APIRouter
from app.api import recurring, anomalies, cash_reservation

api_router = APIRouter()

api_router.include_router(recurring.router)
api_router.include_router(anomalies.router)
api_router.include_router(cash_reservation.router)
