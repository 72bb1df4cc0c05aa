# invite_rewards/services/member_admin.py
"""
Отметки участников и пакетные действия администратора.

Все изменяющие действия оформлены командами с единым контрактом
apply / commit / rollback: apply меняет локальное состояние сразу,
commit сохраняет его в справочник, rollback возвращает локальное
состояние, если сохранить не удалось.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from invite_rewards.clients.member_directory import MemberDirectory
from invite_rewards.core.errors import ConflictError, PartialBatchFailure, ReferralError
from invite_rewards.core.status import ensure_transition, status_for_action
from invite_rewards.models.member import MemberStatus
from invite_rewards.schemas.member import BatchResult, FailedItem, MemberRead, SelectionResult

logger = logging.getLogger(__name__)


class SelectionStore:
    """
    Карта отметок «id участника -> выбран». Принадлежит вызывающему коду
    (странице админки или приложению) и передается координатору по ссылке.
    """
    def __init__(self, initial: dict[int, bool] | None = None):
        self._selected: dict[int, bool] = dict(initial or {})

    def get(self, member_id: int) -> bool:
        return self._selected.get(member_id, False)

    def set(self, member_id: int, selected: bool) -> None:
        self._selected[member_id] = selected

    def discard(self, member_id: int) -> None:
        self._selected.pop(member_id, None)

    def seed(self, members: Iterable[MemberRead]) -> None:
        """Заполняет карту сохраненными значениями invited_selected."""
        for member in members:
            self._selected[member.id] = bool(member.invited_selected)

    def selected_ids(self) -> list[int]:
        return [member_id for member_id, selected in self._selected.items() if selected]

    def snapshot(self) -> dict[int, bool]:
        return dict(self._selected)


class MemberCommand:
    """Изменяющее действие над одним участником."""
    member_id: int

    def apply(self) -> None:
        raise NotImplementedError

    async def commit(self) -> MemberRead:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class SelectionCommand(MemberCommand):
    def __init__(self, directory: MemberDirectory, store: SelectionStore, member_id: int, selected: bool, previous: bool):
        self.directory = directory
        self.store = store
        self.member_id = member_id
        self.selected = selected
        self.previous = previous
        # Выставляется, когда более новое переключение отменило эту команду
        self.superseded = False

    def apply(self) -> None:
        self.store.set(self.member_id, self.selected)

    async def commit(self) -> MemberRead:
        return await self.directory.update(self.member_id, {"invited_selected": self.selected})

    def rollback(self) -> None:
        self.store.set(self.member_id, self.previous)


class StatusCommand(MemberCommand):
    """
    Смена статуса. apply только проверяет переход: локального
    оптимистичного состояния нет, поэтому откатывать нечего.
    """
    def __init__(self, directory: MemberDirectory, member: MemberRead, target: MemberStatus):
        self.directory = directory
        self.member = member
        self.member_id = member.id
        self.target = target

    def apply(self) -> None:
        ensure_transition(self.member.status, self.target)

    async def commit(self) -> MemberRead:
        return await self.directory.update(self.member_id, {"status": self.target.value})

    def rollback(self) -> None:
        logger.info(f"Status change for member {self.member_id} to '{self.target.value}' was not persisted.")


@dataclass
class _InFlight:
    task: asyncio.Task
    command: SelectionCommand


def partial_failure(result: BatchResult) -> PartialBatchFailure | None:
    """Ошибка для отчета, если пакет выполнен не полностью."""
    if not result.failed:
        return None
    return PartialBatchFailure(
        f"{len(result.failed)} of {len(result.failed) + len(result.succeeded)} members failed",
        succeeded=list(result.succeeded),
        failed=[item.model_dump() for item in result.failed],
    )


class MemberActionCoordinator:
    """
    Координирует отметки и смену статусов.

    - Операции со статусом над одним участником не выполняются одновременно
      (флаг занятости, повторная попытка получает ConflictError).
    - Переключения отметки одного участника сериализуются; новое переключение
      отменяет устаревший незавершенный запрос.
    - Операции над разными участниками идут параллельно.
    """
    def __init__(self, directory: MemberDirectory, store: SelectionStore, timeout: float | None = None):
        self.directory = directory
        self.store = store
        self.timeout = timeout
        self._busy: set[int] = set()
        self._locks: dict[int, asyncio.Lock] = {}
        self._inflight: dict[int, _InFlight] = {}

    def is_busy(self, member_id: int) -> bool:
        return member_id in self._busy

    def _lock_for(self, member_id: int) -> asyncio.Lock:
        lock = self._locks.get(member_id)
        if lock is None:
            lock = self._locks[member_id] = asyncio.Lock()
        return lock

    def _drop_idle_lock(self, member_id: int) -> None:
        """Убирает замок участника, если им никто не владеет и переключений нет."""
        lock = self._locks.get(member_id)
        if lock is not None and not lock.locked() and member_id not in self._inflight:
            del self._locks[member_id]

    async def _commit(self, command: MemberCommand) -> MemberRead:
        if self.timeout:
            return await asyncio.wait_for(command.commit(), timeout=self.timeout)
        return await command.commit()

    async def _commit_or_rollback(self, command: MemberCommand) -> MemberRead:
        try:
            return await self._commit(command)
        except asyncio.CancelledError:
            if not getattr(command, "superseded", False):
                command.rollback()
            raise
        except Exception:
            command.rollback()
            raise

    async def _run(self, command: MemberCommand) -> MemberRead:
        command.apply()
        return await self._commit_or_rollback(command)

    # --- Отметки ---

    async def _persist_selection(self, command: SelectionCommand) -> SelectionResult:
        async with self._lock_for(command.member_id):
            try:
                await self._commit_or_rollback(command)
            except asyncio.TimeoutError:
                logger.warning(f"Selection update for member {command.member_id} timed out; reverted.")
                return SelectionResult(id=command.member_id, ok=False, selected=self.store.get(command.member_id), error="timeout")
            except ReferralError as e:
                logger.warning(f"Selection update for member {command.member_id} failed: {e.message}; reverted.")
                return SelectionResult(id=command.member_id, ok=False, selected=self.store.get(command.member_id), error=e.message)
            except Exception as e:
                logger.error(f"Unexpected error while saving selection for member {command.member_id}", exc_info=True)
                return SelectionResult(id=command.member_id, ok=False, selected=self.store.get(command.member_id), error=str(e))
        return SelectionResult(id=command.member_id, ok=True, selected=command.selected)

    async def set_selected(self, member_id: int, selected: bool) -> SelectionResult:
        """
        Оптимистично ставит отметку и сохраняет ее. При ошибке отметка
        возвращается к значению до переключения, ошибка попадает в результат.
        """
        previous = self.store.get(member_id)
        stale = self._inflight.get(member_id)
        if stale is not None and not stale.task.done():
            # Базовое значение: последнее до неподтвержденных переключений
            previous = stale.command.previous
            stale.command.superseded = True
            stale.task.cancel()
            logger.info(f"Cancelled stale selection request for member {member_id}.")

        command = SelectionCommand(self.directory, self.store, member_id, selected, previous)
        command.apply()
        entry = _InFlight(task=asyncio.ensure_future(self._persist_selection(command)), command=command)
        self._inflight[member_id] = entry
        try:
            return await entry.task
        except asyncio.CancelledError:
            if not command.superseded:
                raise
            return SelectionResult(id=member_id, ok=False, selected=self.store.get(member_id), error="superseded")
        finally:
            if self._inflight.get(member_id) is entry:
                del self._inflight[member_id]
            self._drop_idle_lock(member_id)

    def seed_selection(self, members: Iterable[MemberRead]) -> None:
        """
        Подтягивает сохраненные отметки в карту. Участников с незавершенным
        переключением не трогаем: их значение в карте новее сохраненного.
        """
        self.store.seed(m for m in members if m.id not in self._inflight)

    async def toggle_selected(self, member_id: int) -> SelectionResult:
        return await self.set_selected(member_id, not self.store.get(member_id))

    async def batch_select(self, ids: Iterable[int], selected: bool) -> BatchResult:
        unique_ids = list(dict.fromkeys(ids))
        results = await asyncio.gather(*(self.set_selected(member_id, selected) for member_id in unique_ids))
        result = BatchResult(
            succeeded=[r.id for r in results if r.ok],
            failed=[FailedItem(id=r.id, reason=r.error or "unknown error") for r in results if not r.ok],
        )
        if result.failed:
            logger.warning(f"Batch selection finished partially: {partial_failure(result).message}")
        return result

    # --- Статусы ---

    async def change_status(self, member_id: int, action: str) -> MemberRead:
        """
        Применяет approve / reject / delete к одному участнику.
        NotFound, ConflictError и DirectoryError пробрасываются.
        """
        target = status_for_action(action)
        if member_id in self._busy:
            raise ConflictError(f"Member {member_id} is busy with another operation", member_id=member_id)
        self._busy.add(member_id)
        try:
            member = await self.directory.get(member_id)
            updated = await self._run(StatusCommand(self.directory, member, target))
            logger.info(f"Member {member_id} status changed: {member.status} -> {updated.status}")
            return updated
        finally:
            self._busy.discard(member_id)

    async def _try_change_status(self, member_id: int, action: str) -> FailedItem | None:
        try:
            await self.change_status(member_id, action)
        except asyncio.TimeoutError:
            logger.warning(f"Batch '{action}' timed out for member {member_id}.")
            return FailedItem(id=member_id, reason="timeout")
        except ReferralError as e:
            logger.warning(f"Batch '{action}' failed for member {member_id}: {e.message}")
            return FailedItem(id=member_id, reason=e.message)
        except Exception as e:
            logger.error(f"Unexpected error in batch '{action}' for member {member_id}", exc_info=True)
            return FailedItem(id=member_id, reason=str(e))
        return None

    async def batch_action(self, ids: Iterable[int], action: str) -> BatchResult:
        """
        Применяет действие к каждому id независимо. Ошибки отдельных
        участников не останавливают пакет и не откатывают успешные.
        """
        status_for_action(action)
        unique_ids = list(dict.fromkeys(ids))
        outcomes = await asyncio.gather(*(self._try_change_status(member_id, action) for member_id in unique_ids))

        failed = [item for item in outcomes if item is not None]
        failed_ids = {item.id for item in failed}
        result = BatchResult(
            succeeded=[member_id for member_id in unique_ids if member_id not in failed_ids],
            failed=failed,
        )
        logger.info(f"Batch '{action}' done: {len(result.succeeded)} succeeded, {len(result.failed)} failed.")
        return result

    async def purge(self, member_id: int) -> None:
        """Физически удаляет запись, которая уже в статусе deleted."""
        if member_id in self._busy:
            raise ConflictError(f"Member {member_id} is busy with another operation", member_id=member_id)
        self._busy.add(member_id)
        try:
            member = await self.directory.get(member_id)
            if member.status != MemberStatus.DELETED.value:
                raise ConflictError("Only deleted members can be purged", member_id=member_id, status=member.status)
            await self.directory.delete(member_id)
            self.store.discard(member_id)
            logger.info(f"Member {member_id} purged from directory.")
        finally:
            self._busy.discard(member_id)
