from fastapi import APIRouter

from healthydialogue.api.v1.endpoints import auth
from healthydialogue.api.v1.endpoints import conversations
from healthydialogue.api.v1.endpoints import checkins
from healthydialogue.api.v1.endpoints import patients
from healthydialogue.api.v1.endpoints import appointments
from healthydialogue.api.v1.endpoints import dashboard
from healthydialogue.api.v1.endpoints import inbound

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
api_router.include_router(checkins.router, prefix="/checkins", tags=["checkins"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(inbound.router, prefix="/inbound", tags=["inbound"])
