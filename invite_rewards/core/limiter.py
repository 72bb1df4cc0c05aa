# invite_rewards/core/limiter.py

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from invite_rewards.core.config import settings

logger = logging.getLogger(__name__)

# Идентифицируем запросы по IP-адресу: лимитируются только публичные
# эндпоинты (вход в админку), до аутентификации пользователя еще нет.
# Хранилище счетчиков берется из настроек: memory:// локально,
# redis://... в проде, чтобы лимит был общим для всех воркеров.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="moving-window",
)
