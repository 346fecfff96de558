import logging
import math
from decimal import Decimal
from typing import Optional

from solaroptimizer.pricing.pricing_utils import PriceSchedule, load_price_schedule, round_currency, to_decimal
from solaroptimizer.solar_interface import (BatteryMaterialPlan, CostBreakdown, MaterialPlan, PanelSpec, RailCutPlan,
                                            RoofType)

logger = logging.getLogger(__name__)

INVERTER_OVERSIZING = 1.15
SINGLE_PHASE_MAX_KW = 5.0

# (max inverter kW, model); anything larger is a Symo sized to the capacity
INVERTER_MODELS = [
    (3.0, "Fronius Primo 3.0"),
    (5.0, "Fronius Primo 5.0"),
    (8.0, "Fronius Primo 8.2"),
    (10.0, "Fronius Symo 10.0"),
]

HOOKS_PER_PANEL = {
    RoofType.TILE: 3,
    RoofType.METAL: 2,
    RoofType.FLAT: 0,  # Ballasted, no roof penetrations
    RoofType.UNKNOWN: 3,  # Same as tile
}

CLAMPS_PER_PANEL = 4
MC4_CONNECTORS_PER_PANEL = 2
PANELS_PER_JUNCTION_BOX = 10
DC_CABLE_PER_PANEL_M = 5.0
DC_CABLE_TO_INVERTER_M = 20.0
AC_CABLE_RUN_M = 30.0
CONDUIT_FRACTION = 0.6  # Share of the cable run that needs conduit
ISOLATORS = 2  # DC + AC
SURGE_PROTECTORS = 2  # DC + AC
EARTHING_KITS = 1

# (max panels, install days)
INSTALL_DAY_BANDS = [(10, 1), (20, 2), (30, 3)]
MAX_INSTALL_DAYS = 4
BATTERY_INSTALL_DAYS = 1


def calculate_inverter_capacity(system_capacity_kw: float) -> float:
    return float(math.ceil(round(system_capacity_kw * INVERTER_OVERSIZING, 9)))


def select_inverter_model(inverter_capacity_kw: float) -> str:
    for max_kw, model in INVERTER_MODELS:
        if inverter_capacity_kw <= max_kw:
            return model
    return f"Fronius Symo {math.ceil(inverter_capacity_kw):.1f}"


def select_inverter_type(inverter_capacity_kw: float) -> str:
    return "Single Phase" if inverter_capacity_kw <= SINGLE_PHASE_MAX_KW else "Three Phase"


def calculate_hooks(panel_count: int, roof_type: 'RoofType | str') -> int:
    return panel_count * HOOKS_PER_PANEL[RoofType.parse(roof_type)]


def calculate_dc_cable_length(panel_count: int) -> float:
    """String wiring plus the run to the inverter (m)."""
    if panel_count <= 0:
        return 0.0
    return panel_count * DC_CABLE_PER_PANEL_M + DC_CABLE_TO_INVERTER_M


def calculate_installation_days(panel_count: int) -> int:
    if panel_count <= 0:
        return 0
    for max_panels, days in INSTALL_DAY_BANDS:
        if panel_count <= max_panels:
            return days
    return MAX_INSTALL_DAYS


def estimate_costs(panel_count: int,
                   system_capacity_kw: float,
                   inverter_capacity_kw: float,
                   dc_cable_length_m: float,
                   ac_cable_length_m: float,
                   prices: PriceSchedule) -> CostBreakdown:
    """Cost breakdown with every line and the total rounded half-up to cents."""
    panel_cost = prices.panel_unit_price * panel_count
    inverter_cost = prices.inverter_price_per_kw * to_decimal(inverter_capacity_kw)
    mounting_cost = prices.mounting_price_per_panel * panel_count
    electrical_cost = (prices.electrical_base_price
                       + prices.dc_cable_price_per_m * to_decimal(dc_cable_length_m)
                       + prices.ac_cable_price_per_m * to_decimal(ac_cable_length_m))
    labor_cost = prices.labor_price_per_kw * to_decimal(system_capacity_kw)
    total_cost = panel_cost + inverter_cost + mounting_cost + electrical_cost + labor_cost

    return CostBreakdown(panel_cost=round_currency(panel_cost),
                         inverter_cost=round_currency(inverter_cost),
                         mounting_cost=round_currency(mounting_cost),
                         electrical_cost=round_currency(electrical_cost),
                         labor_cost=round_currency(labor_cost),
                         total_cost=round_currency(total_cost))


def estimate_system_cost(system_capacity_kw: float, panel_count: int,
                         prices: Optional[PriceSchedule] = None) -> Decimal:
    """
    Quick quote before a material plan exists: panels, mounting, inverter and labor at array capacity.

    Args:
        system_capacity_kw: Array capacity (kW), also used as the inverter size
        panel_count: Number of panels
        prices: Price schedule; the packaged default when omitted

    Returns:
        Total cost rounded half-up to cents
    """
    prices = prices or load_price_schedule()
    capacity = to_decimal(system_capacity_kw)
    total = (prices.panel_unit_price * panel_count
             + prices.inverter_price_per_kw * capacity
             + prices.mounting_price_per_panel * panel_count
             + prices.labor_price_per_kw * capacity)
    return round_currency(total)


def _empty_material_plan(roof_type: RoofType, rail_cut_plan: RailCutPlan, panel_spec: PanelSpec,
                         installation_type: str) -> MaterialPlan:
    zero = round_currency(0)
    return MaterialPlan(panel_quantity=0, panel_type=panel_spec.panel_type,
                        panel_dimensions=panel_spec.dimensions_label,
                        inverter_quantity=0, inverter_type="", inverter_model="", inverter_capacity_kw=0.0,
                        rail_cut_plan=rail_cut_plan, rails_quantity=0, clamps_quantity=0, hooks_quantity=0,
                        flashings_quantity=0, dc_cable_length_m=0.0, ac_cable_length_m=0.0, conduit_length_m=0.0,
                        isolator_quantity=0, mc4_connectors=0, junction_boxes=0, surge_protectors=0, earthing_kit=0,
                        cost=CostBreakdown(zero, zero, zero, zero, zero, zero),
                        roof_type=roof_type, installation_type=installation_type, estimated_install_days=0)


def build_material_plan(panel_count: int,
                        system_capacity_kw: float,
                        roof_type: 'RoofType | str',
                        rail_cut_plan: RailCutPlan,
                        prices: Optional[PriceSchedule] = None,
                        panel_spec: PanelSpec = PanelSpec(),
                        installation_type: str = "flush-mount") -> MaterialPlan:
    """
    Full bill of materials and cost estimate for `panel_count` panels. With no panels there is nothing
    to install and every quantity and cost is zero.
    """
    roof_type = RoofType.parse(roof_type)
    if panel_count <= 0:
        return _empty_material_plan(roof_type, rail_cut_plan, panel_spec, installation_type)

    prices = prices or load_price_schedule()
    logger.info("Calculating materials for %d panels, %.2fkW system", panel_count, system_capacity_kw)

    inverter_capacity = calculate_inverter_capacity(system_capacity_kw)
    hooks = calculate_hooks(panel_count, roof_type)
    dc_cable_length = calculate_dc_cable_length(panel_count)
    ac_cable_length = AC_CABLE_RUN_M

    cost = estimate_costs(panel_count=panel_count,
                          system_capacity_kw=system_capacity_kw,
                          inverter_capacity_kw=inverter_capacity,
                          dc_cable_length_m=dc_cable_length,
                          ac_cable_length_m=ac_cable_length,
                          prices=prices)

    return MaterialPlan(
        panel_quantity=panel_count,
        panel_type=panel_spec.panel_type,
        panel_dimensions=panel_spec.dimensions_label,
        inverter_quantity=1,
        inverter_type=select_inverter_type(inverter_capacity),
        inverter_model=select_inverter_model(inverter_capacity),
        inverter_capacity_kw=inverter_capacity,
        rail_cut_plan=rail_cut_plan,
        rails_quantity=rail_cut_plan.rails_4m + rail_cut_plan.rails_6m,
        clamps_quantity=panel_count * CLAMPS_PER_PANEL,
        hooks_quantity=hooks,
        flashings_quantity=hooks,  # One flashing per hook
        dc_cable_length_m=dc_cable_length,
        ac_cable_length_m=ac_cable_length,
        conduit_length_m=(dc_cable_length + ac_cable_length) * CONDUIT_FRACTION,
        isolator_quantity=ISOLATORS,
        mc4_connectors=panel_count * MC4_CONNECTORS_PER_PANEL,
        junction_boxes=math.ceil(panel_count / PANELS_PER_JUNCTION_BOX),
        surge_protectors=SURGE_PROTECTORS,
        earthing_kit=EARTHING_KITS,
        cost=cost,
        roof_type=roof_type,
        installation_type=installation_type,
        estimated_install_days=calculate_installation_days(panel_count),
    )


def build_battery_material_plan(battery_capacity_kwh: float,
                                prices: Optional[PriceSchedule] = None) -> BatteryMaterialPlan:
    """
    Cost of a battery storage add-on: capacity at the per-kWh price plus a fixed installation charge.
    """
    if battery_capacity_kwh < 0:
        raise ValueError(f"battery_capacity_kwh must be non-negative, got {battery_capacity_kwh}")
    prices = prices or load_price_schedule()
    battery_cost = prices.battery_price_per_kwh * to_decimal(battery_capacity_kwh)
    installation_cost = prices.battery_installation_price
    logger.info("Calculating battery add-on for %.1fkWh", battery_capacity_kwh)
    return BatteryMaterialPlan(battery_capacity_kwh=battery_capacity_kwh,
                               battery_cost=round_currency(battery_cost),
                               installation_cost=round_currency(installation_cost),
                               total_cost=round_currency(battery_cost + installation_cost),
                               estimated_install_days=BATTERY_INSTALL_DAYS)
