# invite_rewards/core/filters.py
"""
Типизированные выражения фильтров для справочника участников.

Одно и то же дерево выражения компилируется в SQL адаптером справочника
и вычисляется в процессе через `matches()`. Резервный путь поиска опирается
именно на `matches()`, поэтому семантика у обоих путей одинаковая.
"""
from dataclasses import dataclass
from typing import Any, Union

from invite_rewards.core.errors import TransientDirectoryError, ValidationError

# Поля, по которым разрешено фильтровать и сортировать
FILTERABLE_FIELDS = frozenset({
    "id", "referrer_id", "invite_code", "invite_code_self", "status",
    "full_name", "email", "invited_selected", "created_at",
})


def normalize_code(value: Any) -> str:
    """
    trim + lower, None превращается в пустую строку.
    Обрезаются только пробелы, как это делает SQL TRIM() в адаптере справочника.
    """
    if value is None:
        return ""
    return str(value).strip(" ").lower()


def _check_field(field: str) -> None:
    if field not in FILTERABLE_FIELDS:
        raise ValidationError(f"Unsupported filter field: {field!r}", field=field)


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any
    case_insensitive: bool = False

    def __post_init__(self):
        _check_field(self.field)

    def matches(self, record: Any) -> bool:
        actual = getattr(record, self.field, None)
        if self.case_insensitive:
            return actual is not None and normalize_code(actual) == normalize_code(self.value)
        return actual == self.value


@dataclass(frozen=True)
class Contains:
    """Регистронезависимое вхождение подстроки (равенство тоже считается вхождением)."""
    field: str
    value: str

    def __post_init__(self):
        _check_field(self.field)
        if not normalize_code(self.value):
            raise ValidationError("Contains filter requires a non-empty value", field=self.field)

    def matches(self, record: Any) -> bool:
        actual = getattr(record, self.field, None)
        return actual is not None and normalize_code(self.value) in normalize_code(actual)


@dataclass(frozen=True)
class In:
    field: str
    values: tuple

    def __post_init__(self):
        _check_field(self.field)

    def matches(self, record: Any) -> bool:
        return getattr(record, self.field, None) in self.values


@dataclass(frozen=True)
class IsNotNull:
    field: str

    def __post_init__(self):
        _check_field(self.field)

    def matches(self, record: Any) -> bool:
        return getattr(record, self.field, None) is not None


@dataclass(frozen=True)
class Or:
    clauses: tuple

    def matches(self, record: Any) -> bool:
        return any(clause.matches(record) for clause in self.clauses)


@dataclass(frozen=True)
class And:
    clauses: tuple

    def matches(self, record: Any) -> bool:
        return all(clause.matches(record) for clause in self.clauses)


FilterExpr = Union[Equals, Contains, In, IsNotNull, Or, And]


def any_of(*clauses: FilterExpr) -> Or:
    return Or(tuple(clauses))


def all_of(*clauses: FilterExpr) -> And:
    return And(tuple(clauses))


@dataclass(frozen=True)
class OrderBy:
    field: str = "created_at"
    descending: bool = False

    def __post_init__(self):
        _check_field(self.field)


OLDEST_FIRST = OrderBy("created_at", descending=False)
NEWEST_FIRST = OrderBy("created_at", descending=True)


def sort_records(records: list, order: OrderBy) -> list:
    """Стабильная сортировка записей; при равенстве ключа порядок задает id."""
    # None уходит в конец при любом направлении
    present = [r for r in records if getattr(r, order.field, None) is not None]
    missing = [r for r in records if getattr(r, order.field, None) is None]
    present.sort(key=lambda r: (getattr(r, order.field), r.id), reverse=order.descending)
    missing.sort(key=lambda r: r.id)
    return present + missing


def uses_case_insensitive(expr: FilterExpr) -> bool:
    if isinstance(expr, Contains):
        return True
    if isinstance(expr, Equals):
        return expr.case_insensitive
    if isinstance(expr, (Or, And)):
        return any(uses_case_insensitive(c) for c in expr.clauses)
    return False


def widest_or(expr: FilterExpr) -> int:
    """Максимальное число ветвей в одном OR внутри выражения."""
    if isinstance(expr, Or):
        return max([len(expr.clauses)] + [widest_or(c) for c in expr.clauses])
    if isinstance(expr, And):
        return max([0] + [widest_or(c) for c in expr.clauses])
    return 0


def ensure_supported(expr: FilterExpr, *, case_insensitive: bool, max_or_terms: int) -> None:
    """
    Проверяет, что движок справочника может выразить фильтр.
    Иначе поднимает TransientDirectoryError, на которую вызывающий код
    отвечает резервной фильтрацией в процессе.
    """
    if not case_insensitive and uses_case_insensitive(expr):
        raise TransientDirectoryError("Case-insensitive match is not supported by the directory engine")
    width = widest_or(expr)
    if width > max_or_terms:
        raise TransientDirectoryError(
            f"OR clause with {width} terms exceeds directory limit of {max_or_terms}",
            terms=width,
        )
