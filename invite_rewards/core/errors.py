# invite_rewards/core/errors.py
"""
Иерархия доменных ошибок реферальной программы.

Каждая ошибка несет машинный код и HTTP-статус, чтобы глобальный обработчик
в main.py мог отдать единый JSON-ответ без разбора типов в роутерах.
"""
from typing import Any

from fastapi import status


class ReferralError(Exception):
    """Базовая ошибка для всех доменных сбоев."""
    code = "referral_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict:
        content = {"detail": self.message, "code": self.code}
        if self.details:
            content["context"] = self.details
        return content


class NotFound(ReferralError):
    """Участник (владелец или цель операции) отсутствует в справочнике."""
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ValidationError(ReferralError):
    """Некорректный код, неподдерживаемая форма фильтра или входные данные."""
    code = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class DirectoryError(ReferralError):
    """Справочник не смог выполнить операцию (БД недоступна, таймаут и т.д.)."""
    code = "directory_error"
    http_status = status.HTTP_502_BAD_GATEWAY


class TransientDirectoryError(DirectoryError):
    """
    Движок справочника не умеет выразить запрос.
    Ловится локально и переводит поиск на фильтрацию в процессе.
    """
    code = "directory_query_unsupported"


class ConflictError(ReferralError):
    """Недопустимый переход статуса или одновременная операция над тем же участником."""
    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class PartialBatchFailure(ReferralError):
    """Часть идентификаторов в пакетной операции не обработана."""
    code = "partial_batch_failure"
    http_status = status.HTTP_207_MULTI_STATUS

    def __init__(self, message: str, succeeded: list, failed: list):
        super().__init__(message, succeeded=succeeded, failed=failed)
        self.succeeded = succeeded
        self.failed = failed


class RetriesExhausted(ReferralError):
    """Не удалось подобрать уникальный персональный код за отведенное число попыток."""
    code = "retries_exhausted"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, attempts: int):
        super().__init__(message, attempts=attempts)
        self.attempts = attempts
