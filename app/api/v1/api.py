from fastapi import APIRouter
from app.api.v1.audit import routes as audit
from app.api.v1.beds import routes as beds
from app.api.v1.discharge import routes as discharge
from app.api.v1.features import routes as features

api_router = APIRouter()
api_router.include_router(beds.router)
api_router.include_router(discharge.router)
api_router.include_router(features.router)
api_router.include_router(audit.router)
