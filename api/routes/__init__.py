"""API routes package — combines all domain sub-routers into one."""

from fastapi import APIRouter, Depends

from api.middleware import verify_api_key
from api.routes.heatmap import router as heatmap_router

router = APIRouter(dependencies=[Depends(verify_api_key)])

router.include_router(heatmap_router)
