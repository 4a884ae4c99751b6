from fastapi import APIRouter
from .endpoints import (
    users,
    allocations,
    instant_wins,
    wallets,
)

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(
    allocations.router,
    prefix="/allocations",
    tags=["Allocations"],
)
api_router.include_router(
    instant_wins.router,
    prefix="/instant-wins",
    tags=["Instant Wins"],
)
api_router.include_router(wallets.router, prefix="/wallets", tags=["Wallets"])
