import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import attrs
import yaml

DEFAULT_PRICING_FILE = 'pricing.yaml'
CENTS = Decimal('0.01')


def to_decimal(value) -> Decimal:
    # Go through str so 0.1 becomes Decimal('0.1'), not its binary expansion
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _non_negative_price(instance, attribute, value):
    if value < 0:
        raise ValueError(f"{attribute.name} must be non-negative, got {value}")


def _price_field(default):
    return attrs.field(default=Decimal(default), converter=to_decimal, validator=_non_negative_price)


@attrs.define(frozen=True)
class PriceSchedule:
    """
    Unit prices for the cost estimate. Build one directly to price against different numbers, or load a named
    schedule from the packaged YAML with load_price_schedule.
    """
    panel_unit_price: Decimal = _price_field('250')
    inverter_price_per_kw: Decimal = _price_field('1500')
    mounting_price_per_panel: Decimal = _price_field('75')
    electrical_base_price: Decimal = _price_field('500')
    dc_cable_price_per_m: Decimal = _price_field('5')
    ac_cable_price_per_m: Decimal = _price_field('3')
    labor_price_per_kw: Decimal = _price_field('1500')
    battery_price_per_kwh: Decimal = _price_field('1200')
    battery_installation_price: Decimal = _price_field('2000')
    currency: str = 'AUD'


def load_price_schedule(pricing_file: Optional[str] = None, name: str = 'default') -> PriceSchedule:
    """
    Load the schedule called `name` from a pricing YAML file.

    Relative paths are resolved against this package; unknown schedule names raise KeyError.
    """
    pricing_file = pricing_file or DEFAULT_PRICING_FILE
    if os.path.isabs(pricing_file):
        yaml_path = pricing_file
    else:
        yaml_path = os.path.join(os.path.dirname(__file__), pricing_file)

    with open(yaml_path, 'r') as f:
        schedules = yaml.safe_load(f)

    if name not in schedules:
        raise KeyError(f"Unknown price schedule '{name}' in {yaml_path}")
    return PriceSchedule(**schedules[name])
