# invite_rewards/routers/v1/endpoints/admin/__init__.py

from fastapi import APIRouter, Depends

from invite_rewards.dependencies import get_admin_user

from . import members

# Главный роутер админского раздела.
# Зависимость get_admin_user применяется ко ВСЕМ подключенным эндпоинтам,
# поэтому доступ к API админки есть только у авторизованного администратора.
router = APIRouter(
    dependencies=[Depends(get_admin_user)]
)

# Эндпоинты для управления участниками
# /admin/members, /admin/members/{id}, /admin/members/batch и т.д.
router.include_router(members.router, prefix="/members")
