"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, staff

api_router = APIRouter()

# Registration, login (password / OTP / Google), profile
api_router.include_router(auth.router)

# Back-office staff management
api_router.include_router(staff.router)
