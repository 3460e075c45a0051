from fastapi import APIRouter

from transplantflow.api.v1.endpoints import pairs, patients

api_router = APIRouter()

api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(pairs.router, prefix="/pairs", tags=["pairs"])
