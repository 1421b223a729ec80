# Overview: Service-layer operations for store settings; encapsulates business logic and database work.

"""
Store Settings Service

Settings are plain key/value text rows. Defaults live here so a fresh
database (or a missing key) still produces a usable receipt header and a
standard tax rate.

TAX RATE:
The "tax_rate" setting is a percentage string ("15", "12.5"). Callers get it
as basis points via get_tax_rate_bps(); when the setting is absent the
DEFAULT_TAX_RATE_BPS config value applies.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import CurrencyRate, StoreSetting
from ..validation import ValidationError
from .activity_service import log_activity


DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    "company_name": ("Equatorial Imports", "Company name shown on receipts"),
    "company_address": ("Victoria, Mahé, Seychelles", "Company address"),
    "company_phone": ("+248 4 321 000", "Company phone number"),
    "company_email": ("info@equatorialimports.sc", "Company email address"),
    "website": ("www.equatorialimports.sc", "Company website"),
    "vat_number": ("", "VAT registration number"),
    "receipt_footer": ("Thank you for choosing Equatorial Imports!", "Footer printed on receipts"),
    "business_hours": ("Mon-Fri: 8:00 AM - 6:00 PM", "Opening hours"),
    "currency": ("SCR", "Currency code"),
    "currency_symbol": ("₨", "Currency symbol"),
    "tax_rate": ("15", "Standard tax rate (percent)"),
    "delivery_fee_cents": ("0", "Flat storefront delivery fee in cents"),
    "low_stock_threshold": ("5", "Default minimum stock level for new products"),
}

RECEIPT_KEYS = (
    "company_name",
    "company_address",
    "company_phone",
    "company_email",
    "website",
    "vat_number",
    "receipt_footer",
    "business_hours",
    "currency",
    "currency_symbol",
)

MAX_SETTING_KEY_LENGTH = 128


def get_all_settings() -> list[StoreSetting]:
    return db.session.query(StoreSetting).order_by(StoreSetting.key.asc()).all()


def get_settings_map() -> dict[str, str]:
    """Defaults overlaid with stored values."""
    values = {key: default for key, (default, _) in DEFAULT_SETTINGS.items()}
    for row in get_all_settings():
        if row.value is not None:
            values[row.key] = row.value
    return values


def get_setting(key: str, default: str | None = None) -> str | None:
    row = db.session.query(StoreSetting).filter_by(key=key).first()
    if row is not None and row.value is not None:
        return row.value
    if default is not None:
        return default
    fallback = DEFAULT_SETTINGS.get(key)
    return fallback[0] if fallback else None


def percent_to_bps(value: str) -> int:
    try:
        pct = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid percentage: {value}")
    bps = (pct * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if bps < 0 or bps > 10000:
        raise ValidationError("tax_rate must be between 0 and 100")
    return int(bps)


def get_tax_rate_bps() -> int:
    row = db.session.query(StoreSetting).filter_by(key="tax_rate").first()
    if row is None or row.value in (None, ""):
        return int(current_app.config.get("DEFAULT_TAX_RATE_BPS", 1500))
    return percent_to_bps(row.value)


def get_int_setting(key: str, default: int = 0) -> int:
    raw = get_setting(key)
    try:
        return int(raw) if raw not in (None, "") else default
    except ValueError:
        return default


def receipt_header() -> dict:
    settings = get_settings_map()
    return {key: settings.get(key, "") for key in RECEIPT_KEYS}


def upsert_settings(values: dict, *, user_id: int | None = None) -> list[StoreSetting]:
    """
    Insert or update many settings at once (single commit by caller).

    Values are stored as strings; tax_rate is validated as a percentage.
    """
    if not isinstance(values, dict) or not values:
        raise ValidationError("Invalid settings data")

    rows = []
    for key, value in values.items():
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Setting keys must be non-empty strings")
        if len(key) > MAX_SETTING_KEY_LENGTH:
            raise ValidationError(f"Setting key exceeds max length {MAX_SETTING_KEY_LENGTH}")
        text = "" if value is None else str(value)
        if key == "tax_rate":
            percent_to_bps(text)

        row = db.session.query(StoreSetting).filter_by(key=key).first()
        if row is None:
            description = DEFAULT_SETTINGS.get(key, (None, f"Setting for {key}"))[1]
            row = StoreSetting(key=key, value=text, description=description)
            db.session.add(row)
        else:
            row.value = text
        row.updated_by_user_id = user_id
        rows.append(row)

    db.session.flush()
    log_activity(
        action="updated",
        entity="settings",
        description=f"Updated store settings: {', '.join(sorted(values.keys()))}",
        user_id=user_id,
        details={"updated_settings": sorted(values.keys())},
    )
    return rows


def ensure_default_settings() -> int:
    """Create any missing default settings. Returns how many were created."""
    existing = {row.key for row in get_all_settings()}
    created = 0
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if key in existing:
            continue
        db.session.add(StoreSetting(key=key, value=value, description=description))
        created += 1
    db.session.flush()
    return created


# =============================================================================
# CURRENCY RATES
# =============================================================================

def _currency_code(value, field: str) -> str:
    code = (value or "").strip().upper() if isinstance(value, str) else ""
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"{field} must be a 3-letter currency code", {"field": field})
    return code


def list_currency_rates() -> list[CurrencyRate]:
    return (
        db.session.query(CurrencyRate)
        .order_by(CurrencyRate.base_currency.asc(), CurrencyRate.target_currency.asc())
        .all()
    )


def upsert_currency_rate(payload: dict, *, user_id: int | None = None) -> CurrencyRate:
    """
    Insert or update one base/target rate (single commit by caller).

    The rate is taken as a decimal string or number and must be positive.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid currency rate data")

    base = _currency_code(payload.get("base_currency"), "base_currency")
    target = _currency_code(payload.get("target_currency"), "target_currency")
    if base == target:
        raise ValidationError("base_currency and target_currency must differ")

    raw = payload.get("rate")
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("rate is required")
    try:
        rate = Decimal(str(raw).strip()).quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Invalid rate: {raw}")
    if not rate.is_finite() or rate <= 0:
        raise ValidationError("rate must be greater than 0")

    row = db.session.query(CurrencyRate).filter_by(base_currency=base, target_currency=target).first()
    old = None
    if row is None:
        row = CurrencyRate(base_currency=base, target_currency=target, rate=rate)
        db.session.add(row)
    else:
        old = row.rate
        row.rate = rate
    row.updated_by_user_id = user_id
    db.session.flush()

    log_activity(
        action="updated",
        entity="currency_rate",
        entity_id=row.id,
        description=f"Currency rate {base}/{target}: {old if old is not None else '-'} -> {rate}",
        user_id=user_id,
        details={"base_currency": base, "target_currency": target, "rate": str(rate)},
    )
    return row
