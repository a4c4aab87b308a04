import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.mpesa.phone_resolver import (
    ensure_phone_alias,
    find_student_by_phone,
    normalize_msisdn,
    phone_suffix,
)
from app.core.models import StudentPhoneAlias


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("254712345678", "254712345678"),
        ("0712345678", "254712345678"),
        ("712345678", "254712345678"),
        ("+254 712 345 678", "254712345678"),
        ("0712-345-678", "254712345678"),
        ("12345", None),
        ("25471234567", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_msisdn(raw, expected) -> None:
    assert normalize_msisdn(raw) == expected


def test_phone_suffix_is_last_nine_digits() -> None:
    assert phone_suffix("254712345678") == "712345678"


@pytest.mark.asyncio
async def test_guardian_phone_in_local_format_matches(
    db_session: AsyncSession, make_guardian, make_student
) -> None:
    guardian = await make_guardian(phone="0712345678")
    student = await make_student("51029", guardian=guardian)

    match = await find_student_by_phone(db_session, "254712345678")

    assert match.is_unique
    assert match.unique_student_id == student.id
    assert match.match_count == 1


@pytest.mark.asyncio
async def test_student_phone_matches(db_session: AsyncSession, make_student) -> None:
    student = await make_student("51030", phone="+254722000111")

    match = await find_student_by_phone(db_session, "254722000111")

    assert match.unique_student_id == student.id


@pytest.mark.asyncio
async def test_siblings_sharing_a_guardian_are_ambiguous(
    db_session: AsyncSession, make_guardian, make_student
) -> None:
    guardian = await make_guardian(phone="254712345678")
    await make_student("51031", guardian=guardian)
    await make_student("51032", guardian=guardian)

    match = await find_student_by_phone(db_session, "254712345678")

    assert not match.is_unique
    assert match.match_count == 2


@pytest.mark.asyncio
async def test_distinct_guardians_sharing_a_suffix_are_ambiguous(
    db_session: AsyncSession, make_guardian, make_student
) -> None:
    first = await make_guardian(phone="0712345678", full_name="Jane Wanjiku")
    second = await make_guardian(phone="+254712345678", full_name="Peter Otieno")
    await make_student("51035", guardian=first)
    await make_student("51036", guardian=second)

    match = await find_student_by_phone(db_session, "254712345678")

    assert not match.is_unique
    assert match.unique_student_id is None
    assert match.match_count == 2


@pytest.mark.asyncio
async def test_same_student_reached_twice_counts_once(
    db_session: AsyncSession, make_guardian, make_student
) -> None:
    guardian = await make_guardian(phone="0712345678")
    student = await make_student("51033", guardian=guardian, phone="254712345678")
    await ensure_phone_alias(db_session, student.id, "254712345678")
    await db_session.commit()

    match = await find_student_by_phone(db_session, "254712345678")

    assert match.unique_student_id == student.id
    assert match.match_count == 1


@pytest.mark.asyncio
async def test_unknown_phone(db_session: AsyncSession, make_student) -> None:
    await make_student("51034", phone="254700000001")

    match = await find_student_by_phone(db_session, "254799999999")

    assert match.unique_student_id is None
    assert match.match_count == 0


@pytest.mark.asyncio
async def test_ensure_phone_alias_is_idempotent(db_session: AsyncSession, make_student) -> None:
    student = await make_student("51035")

    assert await ensure_phone_alias(db_session, student.id, "254733000222") is True
    await db_session.commit()
    assert await ensure_phone_alias(db_session, student.id, "254733000222") is False

    result = await db_session.execute(
        select(StudentPhoneAlias).where(StudentPhoneAlias.student_id == student.id)
    )
    aliases = result.scalars().all()
    assert [a.phone_number for a in aliases] == ["254733000222"]

    match = await find_student_by_phone(db_session, "254733000222")
    assert match.unique_student_id == student.id
