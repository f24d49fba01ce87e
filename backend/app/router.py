from fastapi import APIRouter

from backend.src.billing.endpoints import billing_router

# Mounted under the configured API version prefix by register_app
router = APIRouter()

router.include_router(billing_router, prefix="/billing", tags=["Billing"])
