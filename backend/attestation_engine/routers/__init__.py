"""Attestation Engine 1.0 - API Routers"""
from .privacy import router as privacy_router
from .verification import router as verification_router

__all__ = [
    "privacy_router",
    "verification_router",
]
