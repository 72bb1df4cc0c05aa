# tests/test_member_directory_sql.py
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from invite_rewards.clients.member_directory import InMemoryMemberDirectory, SqlMemberDirectory, compile_filter
from invite_rewards.core.errors import DirectoryError, NotFound, TransientDirectoryError, ValidationError
from invite_rewards.core.filters import NEWEST_FIRST, Contains, Equals, In, all_of, any_of
from invite_rewards.services.referral import resolve_referrals

T0 = datetime(2024, 1, 1, 12, 0, 0)


async def test_get_returns_snapshot(sql_directory, add_member):
    member = add_member("Alice", created_at=T0, invite_code_self="ALICE-000001", status="approved")

    snapshot = await sql_directory.get(member.id)

    assert snapshot.full_name == "Alice"
    assert snapshot.invite_code_self == "ALICE-000001"
    assert snapshot.invited_selected is False


async def test_get_unknown_member(sql_directory):
    with pytest.raises(NotFound):
        await sql_directory.get(999)


async def test_find_case_insensitive_and_substring(sql_directory, add_member):
    a = add_member("A", created_at=T0, invite_code=" AB12 ", status="approved")
    b = add_member("B", created_at=T0 + timedelta(minutes=1), invite_code="x-ab12-y", status="approved")
    add_member("C", created_at=T0 + timedelta(minutes=2), invite_code="ab1", status="approved")

    exact = await sql_directory.find(Equals("invite_code", "ab12", case_insensitive=True))
    partial = await sql_directory.find(Contains("invite_code", "AB12"))

    assert [m.id for m in exact] == [a.id]
    assert [m.id for m in partial] == [a.id, b.id]


async def test_contains_escapes_like_wildcards(sql_directory, add_member):
    add_member("A", created_at=T0, invite_code="ab12", status="approved")

    assert await sql_directory.find(Contains("invite_code", "a%")) == []
    assert await sql_directory.find(Contains("invite_code", "a_12")) == []


async def test_find_ordering_and_empty_in(sql_directory, add_member):
    first = add_member("First", created_at=T0, status="approved")
    second = add_member("Second", created_at=T0 + timedelta(hours=1), status="approved")

    newest = await sql_directory.find(Equals("status", "approved"), NEWEST_FIRST)

    assert [m.id for m in newest] == [second.id, first.id]
    assert await sql_directory.find(In("referrer_id", ())) == []


async def test_find_refuses_unsupported_filters(sql_directory):
    directory = SqlMemberDirectory(sql_directory.session_factory, case_insensitive=False, max_or_terms=2)

    with pytest.raises(TransientDirectoryError):
        await directory.find(Contains("invite_code", "ab"))
    with pytest.raises(TransientDirectoryError):
        await directory.find(any_of(Equals("id", 1), Equals("id", 2), Equals("id", 3)))


def test_compile_filter_rejects_unknown_expression():
    with pytest.raises(ValidationError):
        compile_filter(object())


async def test_update_and_delete(sql_directory, add_member):
    member = add_member("Bob", created_at=T0)

    updated = await sql_directory.update(member.id, {"invited_selected": True, "status": "approved"})
    assert updated.invited_selected is True
    assert (await sql_directory.get(member.id)).status == "approved"

    with pytest.raises(ValidationError):
        await sql_directory.update(member.id, {"id": 5})

    await sql_directory.delete(member.id)
    with pytest.raises(NotFound):
        await sql_directory.delete(member.id)


async def test_database_failure_becomes_directory_error(sql_directory, mocker):
    mocker.patch(
        "invite_rewards.clients.member_directory.crud_member.find_members",
        side_effect=OperationalError("SELECT", {}, Exception("connection lost")),
    )

    with pytest.raises(DirectoryError):
        await sql_directory.find(Equals("status", "approved"))


async def test_resolver_over_sql_directory(sql_directory, add_member):
    owner = add_member("Owner", created_at=T0, invite_code_self="AB12", status="approved")
    x = add_member("X", created_at=T0 + timedelta(minutes=1), referrer_id=owner.id, invite_code_self="X-1", status="approved")
    y = add_member("Y", created_at=T0 + timedelta(minutes=2), invite_code="ab12", status="approved")
    add_member("P", created_at=T0 + timedelta(minutes=3), invite_code="AB12", status="pending")
    z = add_member("Z", created_at=T0 + timedelta(minutes=4), referrer_id=x.id, status="approved")
    w = add_member("W", created_at=T0 + timedelta(minutes=5), invite_code="x-1", status="approved")

    graph = await resolve_referrals(sql_directory, owner.id)

    assert [m.id for m in graph.level1] == [x.id, y.id]
    assert [m.id for m in graph.level2] == [z.id, w.id]


async def test_combined_filter(sql_directory, add_member):
    a = add_member("A", created_at=T0, status="approved", invite_code="k1")
    add_member("B", created_at=T0, status="pending", invite_code="k1")

    found = await sql_directory.find(all_of(Equals("status", "approved"), Equals("invite_code", "K1", case_insensitive=True)))

    assert [m.id for m in found] == [a.id]


async def test_sql_and_in_process_matching_agree_on_padding(sql_directory, add_member, new_member):
    padded = [" AB12 ", "\tAB12", "AB12\n", "ab12"]
    created = [
        add_member(f"M{i}", created_at=T0 + timedelta(minutes=i), invite_code=code, status="approved")
        for i, code in enumerate(padded)
    ]
    memory = InMemoryMemberDirectory(
        [new_member(m.id, invite_code=m.invite_code, created_at=m.created_at) for m in created]
    )
    where = Equals("invite_code", "ab12", case_insensitive=True)

    from_sql = [m.id for m in await sql_directory.find(where)]
    in_process = [m.id for m in await memory.find(where)]

    assert from_sql == in_process == [created[0].id, created[3].id]
