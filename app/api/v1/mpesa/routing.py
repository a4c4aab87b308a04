"""
Channel routing: which matching strategy applies to a business short code, and which outstanding
ledger line a matched payment should credit.

The table maps short code -> strategy variant. Matching code dispatches on the variant type, so a
new channel is a new table entry, not a new branch.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, settings
from app.core.enums import MpesaReviewReason
from app.core.models import FeeCategory, StudentFee
from app.core.repositories import StudentDirectory, StudentFeeRepository
from app.core.services import get_current_period

from .phone_resolver import StudentPhoneMatch, find_student_by_phone


# --- Bill reference ---
@dataclass(frozen=True)
class BillReference:
    """Payer-typed account reference, e.g. "51029-TUI" (student ref + fee code) or "TUI"."""

    raw: str
    student_ref: str
    fee_code: str

    @property
    def has_student_and_code(self) -> bool:
        return bool(self.student_ref and self.fee_code)


def parse_bill_reference(raw: Optional[str]) -> BillReference:
    text = (raw or "").strip()
    parts = text.split("-")
    student_ref = parts[0].strip()
    fee_code = parts[1].strip().upper() if len(parts) > 1 else ""
    return BillReference(raw=text, student_ref=student_ref, fee_code=fee_code)


# --- Strategy variants ---
@dataclass(frozen=True)
class CategoryPinned:
    """Bill reference must equal bill_ref; phone match only; oldest outstanding line in one category."""

    bill_ref: str
    category_name: str


@dataclass(frozen=True)
class LegacyMultiFee:
    """Phone match first (fee code picks the category); else student ref + fee code, current period."""

    fee_codes: Mapping[str, str]


@dataclass(frozen=True)
class SharedGeneral:
    """Phone match only; oldest outstanding line outside the excluded category."""

    excluded_category: str


@dataclass(frozen=True)
class ReferenceOnly:
    """Bill reference must be "<student ref>-<fee code>"; current-period line only."""

    fee_codes: Mapping[str, str]


ChannelStrategy = Union[CategoryPinned, LegacyMultiFee, SharedGeneral, ReferenceOnly]

_STRATEGY_TYPES = (CategoryPinned, LegacyMultiFee, SharedGeneral, ReferenceOnly)


def _validate_fee_codes(fee_codes: Mapping[str, str]) -> None:
    for code, category in fee_codes.items():
        if len(code) != 3 or not code.isalpha() or code != code.upper():
            raise ValueError(f"Fee code must be three upper-case letters: {code!r}")
        if not category or not category.strip():
            raise ValueError(f"Fee code {code!r} maps to an empty category name")


def _validate_strategy(strategy: object) -> None:
    if not isinstance(strategy, _STRATEGY_TYPES):
        raise ValueError(f"Unknown channel strategy: {strategy!r}")
    if isinstance(strategy, CategoryPinned):
        if not strategy.bill_ref or not strategy.category_name:
            raise ValueError("Category-pinned channel needs bill_ref and category_name")
    elif isinstance(strategy, SharedGeneral):
        if not strategy.excluded_category:
            raise ValueError("Shared channel needs excluded_category")
    else:
        _validate_fee_codes(strategy.fee_codes)


@dataclass(frozen=True)
class RoutingTable:
    channels: Mapping[str, ChannelStrategy]
    default: ChannelStrategy

    def __post_init__(self) -> None:
        for short_code, strategy in self.channels.items():
            if not short_code or not short_code.isdigit():
                raise ValueError(f"Channel id must be a numeric short code: {short_code!r}")
            _validate_strategy(strategy)
        _validate_strategy(self.default)
        object.__setattr__(self, "channels", MappingProxyType(dict(self.channels)))

    @classmethod
    def from_entries(
        cls, entries: List[Tuple[str, ChannelStrategy]], default: ChannelStrategy
    ) -> "RoutingTable":
        channels: Dict[str, ChannelStrategy] = {}
        for short_code, strategy in entries:
            short_code = short_code.strip()
            if short_code in channels:
                raise ValueError(f"Channel {short_code} is registered twice")
            channels[short_code] = strategy
        return cls(channels=channels, default=default)

    def strategy_for(self, short_code: Optional[str]) -> ChannelStrategy:
        return self.channels.get((short_code or "").strip(), self.default)


def build_routing_table(config: Settings) -> RoutingTable:
    fee_codes = MappingProxyType({k.strip().upper(): v for k, v in config.fee_code_categories.items()})
    return RoutingTable.from_entries(
        [
            (
                config.mpesa_pinned_paybill,
                CategoryPinned(bill_ref=config.mpesa_pinned_bill_ref, category_name=config.mpesa_pinned_category),
            ),
            (config.mpesa_legacy_paybill, LegacyMultiFee(fee_codes=fee_codes)),
            (config.mpesa_shared_till, SharedGeneral(excluded_category=config.mpesa_pinned_category)),
        ],
        default=ReferenceOnly(fee_codes=fee_codes),
    )


ROUTING_TABLE = build_routing_table(settings)


# --- Matching ---
@dataclass(frozen=True)
class MatchOutcome:
    student_fee_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    matched_by_phone: bool = False
    review_reason: Optional[MpesaReviewReason] = None

    @property
    def matched(self) -> bool:
        return self.student_fee_id is not None


class _MatchContext:
    def __init__(self, db: AsyncSession, bill_ref: BillReference, msisdn: Optional[str]) -> None:
        self.db = db
        self.bill_ref = bill_ref
        self.msisdn = msisdn
        self.lines = StudentFeeRepository(db)
        self.directory = StudentDirectory(db)
        self._phone: Optional[StudentPhoneMatch] = None

    async def phone_match(self) -> Optional[StudentPhoneMatch]:
        """None when the MSISDN could not be normalized (no lookup attempted)."""
        if self.msisdn is None:
            return None
        if self._phone is None:
            self._phone = await find_student_by_phone(self.db, self.msisdn)
        return self._phone

    async def category_for_code(self, code: str, fee_codes: Mapping[str, str]) -> Optional[FeeCategory]:
        name = fee_codes.get(code) if code else None
        if not name:
            return None
        return await self.directory.get_category_by_name(name)

    async def current_period_line_by_reference(
        self, fee_codes: Mapping[str, str]
    ) -> Tuple[Optional[StudentFee], Optional[UUID]]:
        """Resolve "<student ref>-<fee code>" to the student's current-period line for that category."""
        if not self.bill_ref.has_student_and_code:
            return None, None
        student = await self.directory.get_student_by_username(self.bill_ref.student_ref)
        if student is None:
            return None, None
        category = await self.category_for_code(self.bill_ref.fee_code, fee_codes)
        if category is None:
            return None, student.id
        period = await get_current_period(self.db)
        line = await self.lines.current_period(student.id, category.id, period.academic_year, period.term)
        return line, student.id


def _matched(line: StudentFee, student_id: UUID, by_phone: bool) -> MatchOutcome:
    return MatchOutcome(student_fee_id=line.id, student_id=student_id, matched_by_phone=by_phone)


def _unmatched(phone: Optional[StudentPhoneMatch], student_id: Optional[UUID]) -> MatchOutcome:
    if student_id is not None:
        reason = MpesaReviewReason.NO_FEES
    elif phone is not None and phone.match_count > 1:
        reason = MpesaReviewReason.MULTIPLE_STUDENTS
    else:
        reason = MpesaReviewReason.NO_STUDENT
    return MatchOutcome(student_id=student_id, review_reason=reason)


async def _match_category_pinned(ctx: _MatchContext, strategy: CategoryPinned) -> MatchOutcome:
    if ctx.bill_ref.raw != strategy.bill_ref:
        return MatchOutcome(review_reason=MpesaReviewReason.OTHER)
    phone = await ctx.phone_match()
    if phone is None or not phone.is_unique:
        return _unmatched(phone, None)
    student_id = phone.unique_student_id
    category = await ctx.directory.get_category_by_name(strategy.category_name)
    line = None
    if category is not None:
        line = await ctx.lines.oldest_outstanding(student_id, fee_category_id=category.id)
    return _matched(line, student_id, by_phone=True) if line else _unmatched(phone, student_id)


async def _match_legacy_multi_fee(ctx: _MatchContext, strategy: LegacyMultiFee) -> MatchOutcome:
    phone = await ctx.phone_match()
    if phone is not None and phone.is_unique:
        student_id = phone.unique_student_id
        raw = ctx.bill_ref.raw
        code = ctx.bill_ref.fee_code or (raw.upper() if len(raw) == 3 and raw.isalpha() else "")
        category = await ctx.category_for_code(code, strategy.fee_codes)
        if category is not None:
            line = await ctx.lines.oldest_outstanding(student_id, fee_category_id=category.id)
        else:
            line = await ctx.lines.oldest_outstanding(student_id)
        return _matched(line, student_id, by_phone=True) if line else _unmatched(phone, student_id)

    line, student_id = await ctx.current_period_line_by_reference(strategy.fee_codes)
    if line is not None:
        return _matched(line, student_id, by_phone=False)
    return _unmatched(phone, student_id)


async def _match_shared_general(ctx: _MatchContext, strategy: SharedGeneral) -> MatchOutcome:
    phone = await ctx.phone_match()
    if phone is None or not phone.is_unique:
        return _unmatched(phone, None)
    student_id = phone.unique_student_id
    excluded = await ctx.directory.get_category_by_name(strategy.excluded_category)
    line = await ctx.lines.oldest_outstanding(
        student_id, exclude_category_id=excluded.id if excluded is not None else None
    )
    return _matched(line, student_id, by_phone=True) if line else _unmatched(phone, student_id)


async def _match_reference_only(ctx: _MatchContext, strategy: ReferenceOnly) -> MatchOutcome:
    line, student_id = await ctx.current_period_line_by_reference(strategy.fee_codes)
    if line is not None:
        return _matched(line, student_id, by_phone=False)
    return _unmatched(None, student_id)


_MATCHERS: Dict[type, Callable[[_MatchContext, ChannelStrategy], Awaitable[MatchOutcome]]] = {
    CategoryPinned: _match_category_pinned,
    LegacyMultiFee: _match_legacy_multi_fee,
    SharedGeneral: _match_shared_general,
    ReferenceOnly: _match_reference_only,
}


async def match_notification(
    db: AsyncSession,
    strategy: ChannelStrategy,
    bill_ref: BillReference,
    normalized_msisdn: Optional[str],
) -> MatchOutcome:
    """Zero-or-one target ledger line for a notification; never raises for "no match"."""
    ctx = _MatchContext(db, bill_ref, normalized_msisdn)
    return await _MATCHERS[type(strategy)](ctx, strategy)
