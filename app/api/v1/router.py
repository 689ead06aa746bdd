from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Public landing-page intake
    webhooks,
    # Order pipeline
    orders,
    leads,
    calls,
    # Stock ledger
    inventory,
    # Access Control
    users,
)

api_router = APIRouter()

api_router.include_router(webhooks.router, prefix="/webhook")
api_router.include_router(orders.router, prefix="/orders")
api_router.include_router(leads.router)
api_router.include_router(calls.router)
api_router.include_router(inventory.router, prefix="/inventory")
api_router.include_router(users.router, prefix="/users")
