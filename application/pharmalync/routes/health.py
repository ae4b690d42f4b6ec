from fastapi import APIRouter
from fastapi.responses import JSONResponse

from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

router = APIRouter()


@router.get("/health")
async def health_check():
    details = {
        "status": "healthy",
        "version": configs.APP_VERSION,
        "service": configs.APP_NAME,
        "storage": configs.STORAGE_BACKEND,
    }
    return JSONResponse(content=details)
