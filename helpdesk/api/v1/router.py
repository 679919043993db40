from fastapi import APIRouter
from .integrations import router as integrations_router
from .oauth import router as oauth_router
from .webhooks import router as webhooks_router
from .mock import router as mock_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(integrations_router, prefix="/integrations", tags=["integrations"])
api_router.include_router(oauth_router, prefix="/oauth", tags=["oauth"])
api_router.include_router(webhooks_router, prefix="/webhook", tags=["webhooks"])
api_router.include_router(mock_router, prefix="/mock", tags=["mock"])
