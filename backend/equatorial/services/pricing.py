# Overview: Pure POS pricing arithmetic (no database access).

"""
POS Pricing Calculator

All amounts are integer cents and all rates integer basis points, so every
figure is exact and rounding happens in exactly one place (round_half_up_div).

    line_total = unit_price * quantity - line_discount
    line_tax   = round_half_up(line_total * tax_rate_bps / 10000)
    subtotal   = sum(line_total)
    tax        = sum(line_tax)
    total      = subtotal + tax - header_discount

Example: 999 cents at 1500 bps -> tax 150, total 1149; cash 1500 -> change 351.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidRequest

BPS_DENOMINATOR = 10_000

PAYMENT_METHODS = ("cash", "card", "mixed")


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division rounding halves away from zero."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    sign = -1 if numerator < 0 else 1
    q, r = divmod(abs(numerator), denominator)
    if r * 2 >= denominator:
        q += 1
    return sign * q


def line_tax_cents(line_total_cents: int, tax_rate_bps: int) -> int:
    return round_half_up_div(line_total_cents * tax_rate_bps, BPS_DENOMINATOR)


def tax_inclusive_portion(amount_cents: int, tax_rate_bps: int) -> int:
    """Tax contained in a tax-inclusive amount: amount * r / (1 + r)."""
    return round_half_up_div(amount_cents * tax_rate_bps, BPS_DENOMINATOR + tax_rate_bps)


@dataclass(frozen=True)
class LineInput:
    product_id: int
    quantity: int
    unit_price_cents: int
    tax_rate_bps: int
    discount_cents: int = 0


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price_cents: int
    discount_cents: int
    line_total_cents: int
    tax_rate_bps: int
    tax_cents: int


@dataclass(frozen=True)
class PricedCart:
    lines: tuple[PricedLine, ...]
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def price_line(line: LineInput) -> PricedLine:
    if line.quantity <= 0:
        raise InvalidRequest("Quantity must be greater than 0", {"product_id": line.product_id})
    if line.unit_price_cents < 0:
        raise InvalidRequest("Unit price cannot be negative", {"product_id": line.product_id})
    if line.discount_cents < 0:
        raise InvalidRequest("Discount cannot be negative", {"product_id": line.product_id})

    gross = line.unit_price_cents * line.quantity
    if line.discount_cents > gross:
        raise InvalidRequest(
            "Line discount exceeds line amount",
            {"product_id": line.product_id, "discount_cents": line.discount_cents, "gross_cents": gross},
        )
    line_total = gross - line.discount_cents
    return PricedLine(
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price_cents=line.unit_price_cents,
        discount_cents=line.discount_cents,
        line_total_cents=line_total,
        tax_rate_bps=line.tax_rate_bps,
        tax_cents=line_tax_cents(line_total, line.tax_rate_bps),
    )


def price_lines(lines, discount_cents: int = 0) -> PricedCart:
    if discount_cents < 0:
        raise InvalidRequest("Discount cannot be negative")

    priced = tuple(price_line(line) for line in lines)
    subtotal = sum(p.line_total_cents for p in priced)
    tax = sum(p.tax_cents for p in priced)
    total = subtotal + tax - discount_cents
    return PricedCart(
        lines=priced,
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount_cents,
        total_cents=total,
    )


def change_due(total_cents: int, cash_received_cents: int) -> int:
    return max(0, cash_received_cents - total_cents)


@dataclass(frozen=True)
class Settlement:
    cash_received_cents: int
    card_amount_cents: int
    change_given_cents: int


def settle_payment(
    payment_method: str,
    total_cents: int,
    *,
    cash_received_cents: int | None = None,
    card_amount_cents: int | None = None,
) -> Settlement:
    """
    Work out tendered amounts and change for a priced sale.

    cash: cash must cover the total; change is the excess.
    card: the card is charged the exact total.
    mixed: the card portion is applied first, cash covers the rest.
    """
    if payment_method not in PAYMENT_METHODS:
        raise InvalidRequest(
            f"Invalid payment method: {payment_method}",
            {"allowed": list(PAYMENT_METHODS)},
        )

    if payment_method == "card":
        return Settlement(cash_received_cents=0, card_amount_cents=total_cents, change_given_cents=0)

    cash = cash_received_cents or 0
    card = card_amount_cents or 0
    if cash < 0 or card < 0:
        raise InvalidRequest("Tendered amounts cannot be negative")

    if payment_method == "cash":
        if cash < total_cents:
            raise InvalidRequest(
                "Cash received is less than the total",
                {"total_cents": total_cents, "cash_received_cents": cash},
            )
        return Settlement(
            cash_received_cents=cash,
            card_amount_cents=0,
            change_given_cents=change_due(total_cents, cash),
        )

    if card > total_cents:
        raise InvalidRequest(
            "Card amount exceeds the total",
            {"total_cents": total_cents, "card_amount_cents": card},
        )
    if cash + card < total_cents:
        raise InvalidRequest(
            "Cash and card amounts do not cover the total",
            {"total_cents": total_cents, "cash_received_cents": cash, "card_amount_cents": card},
        )
    return Settlement(
        cash_received_cents=cash,
        card_amount_cents=card,
        change_given_cents=change_due(total_cents - card, cash),
    )
