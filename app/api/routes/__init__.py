"""
API Routes
"""
from fastapi import APIRouter

from app.api.webhooks.telegram import router as telegram_router

router = APIRouter()

# Canonical webhook endpoint (documented)
router.include_router(telegram_router, prefix="/telegram", tags=["webhooks"])

# Backwards-compatible webhook endpoint
router.include_router(
    telegram_router,
    prefix="/webhooks/telegram",
    tags=["webhooks"],
    include_in_schema=False
)
