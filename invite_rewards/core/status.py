# invite_rewards/core/status.py
from invite_rewards.core.errors import ConflictError, ValidationError
from invite_rewards.models.member import MemberStatus

# Разрешенные переходы статуса участника. deleted является конечным состоянием
ALLOWED_TRANSITIONS: dict[MemberStatus, frozenset[MemberStatus]] = {
    MemberStatus.PENDING: frozenset({MemberStatus.APPROVED, MemberStatus.REJECTED, MemberStatus.DELETED}),
    MemberStatus.APPROVED: frozenset({MemberStatus.REJECTED, MemberStatus.DELETED}),
    MemberStatus.REJECTED: frozenset({MemberStatus.APPROVED, MemberStatus.DELETED}),
    MemberStatus.DELETED: frozenset(),
}

ACTION_TO_STATUS = {
    "approve": MemberStatus.APPROVED,
    "reject": MemberStatus.REJECTED,
    "delete": MemberStatus.DELETED,
}


def status_for_action(action: str) -> MemberStatus:
    try:
        return ACTION_TO_STATUS[action]
    except KeyError:
        raise ValidationError(f"Unsupported action: {action!r}", action=action) from None


def ensure_transition(current: str, target: MemberStatus) -> None:
    """Поднимает ConflictError, если переход current -> target не разрешен."""
    try:
        current_status = MemberStatus(current)
    except ValueError:
        raise ConflictError(f"Member has unknown status {current!r}", status=current) from None
    if target not in ALLOWED_TRANSITIONS[current_status]:
        raise ConflictError(
            f"Transition {current_status.value} -> {target.value} is not allowed",
            current=current_status.value,
            target=target.value,
        )
