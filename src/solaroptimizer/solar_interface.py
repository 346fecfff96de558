import attrs
import enum
import math
import pandas as pd
from decimal import Decimal

RAIL_CUT_TOLERANCE_M = 0.01  # 1cm slack when checking whether a cut fits on a rail
MIN_USABLE_OFFCUT_M = 0.5  # Leftovers shorter than this are scrap

HORIZONTAL_RAIL_PURPOSE = "Horizontal support rail"
VERTICAL_RAIL_PURPOSE = "Vertical support rail"
GENERIC_RAIL_PURPOSE = "Support rail"


def _positive(instance, attribute, value):
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


@attrs.define(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


class RoofType(enum.Enum):
    """Roof coverings we have mounting rules for; anything else is UNKNOWN."""
    FLAT = "flat"
    TILE = "tile"
    METAL = "metal"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, roof_type: 'str | RoofType | None') -> 'RoofType':
        if isinstance(roof_type, RoofType):
            return roof_type
        if roof_type is None:
            return cls.UNKNOWN
        try:
            return cls(roof_type.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Orientation(enum.Enum):
    NORTH = "North"
    NORTH_EAST = "North-East"
    EAST = "East"
    SOUTH_EAST = "South-East"
    SOUTH = "South"
    SOUTH_WEST = "South-West"
    WEST = "West"
    NORTH_WEST = "North-West"


class RailStockKind(enum.Enum):
    """Standard mounting rail stock lengths (m)."""
    FOUR_METER = 4.0
    SIX_METER = 6.0

    @property
    def length_m(self) -> float:
        return self.value

    @property
    def label(self) -> str:
        return f"{self.value:g}m"


class OversizePolicy(enum.Enum):
    """What to do with a required rail length longer than the largest stock piece."""
    FLAG = "flag"
    SPLICE = "splice"


@attrs.define(frozen=True)
class PanelSpec:
    """Physical panel used for every layout; portrait orientation."""
    width_m: float = attrs.field(default=1.0, validator=_positive)
    height_m: float = attrs.field(default=1.7, validator=_positive)
    wattage_w: float = attrs.field(default=330.0, validator=_positive)
    panel_type: str = "330W Monocrystalline PERC"

    @property
    def area_m2(self) -> float:
        return self.width_m * self.height_m

    @property
    def dimensions_label(self) -> str:
        return f"{self.height_m}m x {self.width_m}m"


@attrs.define(frozen=True)
class LayoutGrid:
    rows: int
    columns: int
    panel_spacing_m: float = 0.05
    fits_roof: bool = True  # False when the grid is the (1, n) fallback

    @property
    def slots(self) -> int:
        return self.rows * self.columns


@attrs.define
class Rail:
    """One physical stock piece being cut up. Owned by a single packing run."""
    kind: RailStockKind
    cuts: list[float] = attrs.field(factory=list)
    purposes: list[str] = attrs.field(factory=list)  # Parallel to cuts

    @property
    def total_length(self) -> float:
        return self.kind.length_m

    @property
    def remaining_length(self) -> float:
        return self.total_length - math.fsum(self.cuts)

    def fits(self, length: float, tolerance: float = RAIL_CUT_TOLERANCE_M) -> bool:
        return self.remaining_length >= length + tolerance

    def add_cut(self, length: float, purpose: str = GENERIC_RAIL_PURPOSE):
        if length > self.remaining_length + RAIL_CUT_TOLERANCE_M:
            raise ValueError(f"Cut of {length}m does not fit on {self.kind.label} rail "
                             f"with {self.remaining_length:.3f}m remaining")
        self.cuts.append(length)
        self.purposes.append(purpose)

    @property
    def is_waste(self) -> bool:
        return self.remaining_length < MIN_USABLE_OFFCUT_M


@attrs.define(frozen=True)
class RailCut:
    length: float
    count: int
    source: RailStockKind
    purpose: str

    def to_record(self) -> dict:
        return {'length': self.length, 'count': self.count,
                'source': self.source.label, 'purpose': self.purpose}


@attrs.define(frozen=True)
class UnpackableCut:
    """A required length that no single stock rail can supply."""
    length: float
    count: int
    purpose: str


@attrs.define
class RailCutPlan:
    cuts: list[RailCut] = attrs.field(factory=list)
    rails_4m: int = 0
    rails_6m: int = 0
    total_wastage_m: float = 0.0
    rails: list[Rail] = attrs.field(factory=list)
    unpackable_cuts: list[UnpackableCut] = attrs.field(factory=list)
    splice_joints: int = 0

    @property
    def is_complete(self) -> bool:
        return len(self.unpackable_cuts) == 0

    @property
    def total_stock_length_m(self) -> float:
        return math.fsum(r.total_length for r in self.rails)

    @property
    def reusable_offcut_m(self) -> float:
        return math.fsum(r.remaining_length for r in self.rails if not r.is_waste)

    def to_records(self) -> list[dict]:
        return [c.to_record() for c in self.cuts]

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame(self.to_records(), columns=['length', 'count', 'source', 'purpose'])
        df['total_length'] = df['length'] * df['count']
        return df


@attrs.define(frozen=True)
class CostBreakdown:
    panel_cost: Decimal
    inverter_cost: Decimal
    mounting_cost: Decimal
    electrical_cost: Decimal
    labor_cost: Decimal
    total_cost: Decimal


@attrs.define
class MaterialPlan:
    """Bill of materials for one installation."""
    # Panels
    panel_quantity: int
    panel_type: str
    panel_dimensions: str

    # Inverter
    inverter_quantity: int
    inverter_type: str  # "Single Phase" / "Three Phase"
    inverter_model: str
    inverter_capacity_kw: float

    # Mounting
    rail_cut_plan: RailCutPlan
    rails_quantity: int
    clamps_quantity: int
    hooks_quantity: int
    flashings_quantity: int

    # Electrical
    dc_cable_length_m: float
    ac_cable_length_m: float
    conduit_length_m: float
    isolator_quantity: int
    mc4_connectors: int

    # Additional
    junction_boxes: int
    surge_protectors: int
    earthing_kit: int

    cost: CostBreakdown
    roof_type: RoofType
    installation_type: str = "flush-mount"
    estimated_install_days: int = 1

    def bill_of_materials(self) -> pd.DataFrame:
        rows = [
            ('Solar panel', self.panel_quantity, 'unit'),
            ('Inverter', self.inverter_quantity, 'unit'),
            ('Rail 4m', self.rail_cut_plan.rails_4m, 'unit'),
            ('Rail 6m', self.rail_cut_plan.rails_6m, 'unit'),
            ('Rail splice', self.rail_cut_plan.splice_joints, 'unit'),
            ('Clamp', self.clamps_quantity, 'unit'),
            ('Roof hook', self.hooks_quantity, 'unit'),
            ('Flashing', self.flashings_quantity, 'unit'),
            ('DC cable', self.dc_cable_length_m, 'm'),
            ('AC cable', self.ac_cable_length_m, 'm'),
            ('Conduit', self.conduit_length_m, 'm'),
            ('Isolator', self.isolator_quantity, 'unit'),
            ('MC4 connector', self.mc4_connectors, 'unit'),
            ('Junction box', self.junction_boxes, 'unit'),
            ('Surge protector', self.surge_protectors, 'unit'),
            ('Earthing kit', self.earthing_kit, 'unit'),
        ]
        return pd.DataFrame(rows, columns=['item', 'quantity', 'unit']).set_index('item')


@attrs.define(frozen=True)
class BatteryMaterialPlan:
    """Battery storage add-on quoted on top of a solar installation."""
    battery_capacity_kwh: float
    battery_cost: Decimal
    installation_cost: Decimal
    total_cost: Decimal
    estimated_install_days: int = 1


@attrs.define
class AnalysisResult:
    # Geometry
    roof_area_m2: float
    roof_azimuth_deg: float
    roof_azimuth_from_polygon: bool
    optimal_azimuth_deg: float
    optimal_tilt_deg: float
    roof_pitch_deg: float
    roof_orientation: Orientation
    roof_type: RoofType
    usable_area_m2: float

    # Sizing and layout
    panel_wattage_w: float
    panel_spacing_m: float
    requested_panel_count: int
    max_panel_count: int
    panel_count: int
    panel_count_clamped: bool
    system_capacity_kw: float
    layout: LayoutGrid

    # Production
    peak_sun_hours: float
    shading_factor: float
    theoretical_production_kwh: float
    annual_production_kwh: float
    daily_average_kwh: float

    material_plan: MaterialPlan
    warnings: list[str] = attrs.field(factory=list)

    @property
    def layout_rows(self) -> int:
        return self.layout.rows

    @property
    def layout_columns(self) -> int:
        return self.layout.columns

    @property
    def rail_cut_plan(self) -> RailCutPlan:
        return self.material_plan.rail_cut_plan

    @property
    def cost(self) -> CostBreakdown:
        return self.material_plan.cost
