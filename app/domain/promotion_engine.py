"""Promotion applicability and discount evaluation.

Everything here is a pure function of the records and the instant passed in:
no database access, no clock reads, no counter updates. The service layer
loads the records, supplies ``now`` and persists nothing on the way back, so
previewing prices any number of times never consumes promotion usage.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, assert_never

from app.domain.enums import PromotionType, TargetType
from app.services.exceptions import DomainValidationError


@dataclass(frozen=True)
class PurchaseContext:
    """Line being priced: unit price, quantity and, optionally, the cart total.

    ``purchase_total`` is what ``min_purchase`` is checked against; when the
    caller does not know the cart total the line total is used instead.
    """

    unit_price: float
    quantity: int
    purchase_total: float | None = None

    def __post_init__(self) -> None:
        for field in ("unit_price", "quantity", "purchase_total"):
            amount = getattr(self, field)
            if amount is not None and not math.isfinite(amount):
                raise DomainValidationError(f"{field} must be a finite number")
        if self.unit_price < 0:
            raise DomainValidationError("unit_price must not be negative")
        if self.quantity < 0:
            raise DomainValidationError("quantity must not be negative")
        if self.purchase_total is not None and self.purchase_total < 0:
            raise DomainValidationError("purchase_total must not be negative")

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    @property
    def qualifying_total(self) -> float:
        if self.purchase_total is None:
            return self.line_total
        return self.purchase_total


# --- Discount rules -------------------------------------------------------


@dataclass(frozen=True)
class PercentageRule:
    value: float
    max_discount: float | None = None
    min_purchase: float = 0


@dataclass(frozen=True)
class FixedAmountRule:
    value: float
    max_discount: float | None = None
    min_purchase: float = 0


@dataclass(frozen=True)
class BuyXGetYRule:
    buy_quantity: int
    get_quantity: int
    value: float
    max_discount: float | None = None
    min_purchase: float = 0


DiscountRule = PercentageRule | FixedAmountRule | BuyXGetYRule


def rule_for(promotion: Any) -> DiscountRule:
    """Build the typed rule for a promotion record.

    Raises ``DomainValidationError`` for a type outside the enumeration or a
    BUY_X_GET_Y record without its quantities; corrupt rows must not quietly
    price at zero.
    """
    try:
        promo_type = PromotionType(promotion.type)
    except ValueError:
        raise DomainValidationError(f"Unknown promotion type: {promotion.type!r}") from None

    value = float(promotion.value)
    max_discount = None if promotion.max_discount is None else float(promotion.max_discount)
    min_purchase = float(promotion.min_purchase or 0)

    match promo_type:
        case PromotionType.PERCENTAGE:
            return PercentageRule(value=value, max_discount=max_discount, min_purchase=min_purchase)
        case PromotionType.FIXED_AMOUNT:
            return FixedAmountRule(value=value, max_discount=max_discount, min_purchase=min_purchase)
        case PromotionType.BUY_X_GET_Y:
            if not promotion.buy_quantity or not promotion.get_quantity:
                raise DomainValidationError("BUY_X_GET_Y promotion is missing buy_quantity or get_quantity")
            return BuyXGetYRule(
                buy_quantity=int(promotion.buy_quantity),
                get_quantity=int(promotion.get_quantity),
                value=value,
                max_discount=max_discount,
                min_purchase=min_purchase,
            )
        case _:
            assert_never(promo_type)


def _raw_discount(rule: DiscountRule, context: PurchaseContext) -> float:
    match rule:
        case PercentageRule():
            return context.line_total * (rule.value / 100)
        case FixedAmountRule():
            return min(rule.value, context.line_total)
        case BuyXGetYRule():
            free_sets = context.quantity // (rule.buy_quantity + rule.get_quantity)
            return free_sets * rule.get_quantity * context.unit_price * (rule.value / 100)
        case _:
            assert_never(rule)


def discount_for_rule(rule: DiscountRule, context: PurchaseContext) -> float:
    if context.qualifying_total < rule.min_purchase:
        return 0.0

    amount = _raw_discount(rule, context)
    if rule.max_discount is not None:
        amount = min(amount, rule.max_discount)
    amount = min(max(amount, 0.0), context.line_total)
    return round(amount, 2)


def calculate_discount(promotion: Any, context: PurchaseContext) -> float:
    """Discount a single promotion yields for ``context``, rounded to cents."""
    return discount_for_rule(rule_for(promotion), context)


# --- Eligibility ----------------------------------------------------------


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_within_window(promotion: Any, now: datetime) -> bool:
    # Both ends inclusive: a promotion ending at 23:59:59 still applies at that second.
    now = as_utc(now)
    return as_utc(promotion.start_date) <= now <= as_utc(promotion.end_date)


def _contains(identifiers: Iterable[Any] | None, wanted: Any) -> bool:
    if wanted is None:
        return False
    wanted = str(wanted)
    return any(str(item) == wanted for item in identifiers or ())


def matches_target(promotion: Any, product_id: Any = None, category_id: Any = None) -> bool:
    target_type = promotion.target_type or TargetType.ALL.value
    if target_type == TargetType.ALL.value:
        return True
    if target_type == TargetType.PRODUCT.value:
        return _contains(promotion.target_products, product_id)
    if target_type == TargetType.CATEGORY.value:
        return _contains(promotion.target_categories, category_id)
    return False


def sort_by_priority(promotions: Iterable[Any]) -> list[Any]:
    """Priority descending, newest first on ties."""
    return sorted(promotions, key=lambda p: (p.priority or 0, as_utc(p.created_at)), reverse=True)


def require_target(product_id: Any) -> None:
    if product_id is None or str(product_id).strip() == "":
        raise DomainValidationError("product_id is required")


def filter_eligible(
    promotions: Iterable[Any],
    now: datetime,
    *,
    product_id: Any = None,
    category_id: Any = None,
    target_type: str | None = None,
) -> list[Any]:
    """Active, in-window promotions compatible with the given target.

    With neither ``product_id`` nor ``category_id`` targeting is not checked,
    which is what the "currently active" listing wants.
    """
    check_target = product_id is not None or category_id is not None
    eligible = []
    for promotion in promotions:
        if not promotion.is_active:
            continue
        if not is_within_window(promotion, now):
            continue
        if target_type is not None and promotion.target_type != target_type:
            continue
        if check_target and not matches_target(promotion, product_id, category_id):
            continue
        eligible.append(promotion)
    return sort_by_priority(eligible)


# --- Resolution -----------------------------------------------------------


@dataclass(frozen=True)
class ResolvedPromotion:
    promotion: Any
    discount_amount: float
    usage_exhausted: bool = False

    @property
    def applicable(self) -> bool:
        return self.discount_amount > 0 and not self.usage_exhausted


def _usage_exhausted(promotion: Any) -> bool:
    limit = promotion.usage_limit
    return limit is not None and (promotion.usage_count or 0) >= limit


def resolve_for_target(
    promotions: Iterable[Any],
    now: datetime,
    product_id: Any,
    category_id: Any,
    context: PurchaseContext,
    *,
    applicable_only: bool = False,
) -> list[ResolvedPromotion]:
    """Eligible promotions for a product, each annotated with its discount.

    Order is the eligibility order (priority, then newest). With
    ``applicable_only`` entries that yield nothing or whose usage limit is
    already reached are dropped.
    """
    require_target(product_id)
    resolved = [
        ResolvedPromotion(
            promotion=promotion,
            discount_amount=calculate_discount(promotion, context),
            usage_exhausted=_usage_exhausted(promotion),
        )
        for promotion in filter_eligible(promotions, now, product_id=product_id, category_id=category_id)
    ]
    if applicable_only:
        resolved = [item for item in resolved if item.applicable]
    return resolved


def best_single(resolved: Sequence[ResolvedPromotion]) -> ResolvedPromotion | None:
    """Largest applicable discount; the higher-ranked entry wins a tie."""
    best: ResolvedPromotion | None = None
    for item in resolved:
        if not item.applicable:
            continue
        if best is None or item.discount_amount > best.discount_amount:
            best = item
    return best


def stack(resolved: Sequence[ResolvedPromotion], context: PurchaseContext) -> float:
    total = sum(item.discount_amount for item in resolved if item.applicable)
    return round(min(total, context.line_total), 2)
