from fastapi import APIRouter
from . import users, households, tasks, rewards

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(households.router, prefix="/households", tags=["Households"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(rewards.router, prefix="/rewards", tags=["Rewards"])
