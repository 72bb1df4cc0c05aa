# invite_rewards/routers/v1/api.py

from fastapi import APIRouter

from invite_rewards.routers.v1.endpoints import auth, members
from invite_rewards.routers.v1.endpoints import admin as admin_v1_router

# Создаем главный роутер для API версии v1
# Все пути, подключенные к нему, будут иметь префикс /api/v1
api_router = APIRouter(prefix="/v1")

# Публичные эндпоинты
api_router.include_router(auth.router, tags=["Authentication"])
api_router.include_router(members.router, tags=["Members & Referrals"])

# Админские эндпоинты
api_router.include_router(admin_v1_router.router, prefix="/admin", tags=["Admin"])
