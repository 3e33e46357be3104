"""Platform / seller income split for a confirmed order."""

from __future__ import annotations

from dataclasses import dataclass

from storefront.core.units import format_units


@dataclass(frozen=True)
class IncomeSplit:
    platform_units: int
    seller_units: int
    platform_income: str
    seller_income: str

    def platform_income_display(self, symbol: str) -> str:
        return f"{self.platform_income} {symbol}"

    def seller_income_display(self, symbol: str) -> str:
        return f"{self.seller_income} {symbol}"


def split_income(price_units: int, commission_rate: int, decimals: int) -> IncomeSplit:
    """Split a price in base units by a whole-percent commission.

    The platform share truncates toward zero; the seller keeps the remainder,
    so the two always add up to the price.
    """
    if price_units < 0:
        raise ValueError("price must be non-negative")
    if not 0 <= commission_rate <= 100:
        raise ValueError("commission rate must be between 0 and 100")

    platform_units = price_units * commission_rate // 100
    seller_units = price_units - platform_units
    return IncomeSplit(
        platform_units=platform_units,
        seller_units=seller_units,
        platform_income=format_units(platform_units, decimals),
        seller_income=format_units(seller_units, decimals),
    )
