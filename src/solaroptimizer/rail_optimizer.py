import logging
import math
from collections import Counter
from typing import Optional

from solaroptimizer.solar_interface import (Rail, RailCut, RailCutPlan, RailStockKind, UnpackableCut,
                                            OversizePolicy, PanelSpec,
                                            RAIL_CUT_TOLERANCE_M,
                                            HORIZONTAL_RAIL_PURPOSE, VERTICAL_RAIL_PURPOSE, GENERIC_RAIL_PURPOSE)

logger = logging.getLogger(__name__)

RAILS_PER_PANEL_ROW = 2
RAILS_PER_PANEL_COLUMN = 2
SPLICE_ROUNDING_DIGITS = 3  # Spliced segments are cut to the millimetre

# Order used when presenting aggregated cuts
_STOCK_DISPLAY_ORDER = {RailStockKind.FOUR_METER: 0, RailStockKind.SIX_METER: 1}


def required_rail_lengths(rows: int, columns: int, spacing: float,
                          panel_spec: PanelSpec = PanelSpec()) -> tuple[float, float]:
    """(horizontal, vertical) rail length spanning a rows x columns panel grid."""
    horizontal_length = columns * panel_spec.width_m + (columns - 1) * spacing
    vertical_length = rows * panel_spec.height_m + (rows - 1) * spacing
    return horizontal_length, vertical_length


def build_required_cuts(rows: int, columns: int, spacing: float,
                        panel_spec: PanelSpec = PanelSpec()) -> list[float]:
    """Every rail length the grid needs: two horizontal rails per row and two vertical rails per column."""
    if rows <= 0 or columns <= 0:
        return []
    horizontal_length, vertical_length = required_rail_lengths(rows, columns, spacing, panel_spec)
    return [horizontal_length] * (rows * RAILS_PER_PANEL_ROW) + [vertical_length] * (columns * RAILS_PER_PANEL_COLUMN)


def split_into_segments(length: float, max_segment: float) -> list[float]:
    """Split an oversize length into full stock-length segments plus the remainder."""
    n_full = int(length // max_segment)
    remainder = round(length - n_full * max_segment, SPLICE_ROUNDING_DIGITS)
    segments = [max_segment] * n_full
    if remainder >= RAIL_CUT_TOLERANCE_M:
        segments.append(remainder)
    return segments


def classify_cut_purpose(length: float, horizontal_length: float, vertical_length: float) -> str:
    if abs(length - horizontal_length) < RAIL_CUT_TOLERANCE_M:
        return HORIZONTAL_RAIL_PURPOSE
    if abs(length - vertical_length) < RAIL_CUT_TOLERANCE_M:
        return VERTICAL_RAIL_PURPOSE
    return GENERIC_RAIL_PURPOSE


def _first_fit(rails: list[Rail], length: float, kind: RailStockKind) -> Optional[int]:
    """Index of the first opened rail of `kind` that can take the cut, in the order rails were opened."""
    for i, rail in enumerate(rails):
        if rail.kind == kind and rail.fits(length):
            return i
    return None


def pack_cuts(lengths: list[float], purposes: Optional[list[str]] = None) -> list[Rail]:
    """
    First-Fit Decreasing over 6m and 4m stock.

    Longest cuts first. Each cut goes onto the first opened 6m rail with room for it (1cm tolerance),
    otherwise onto the first opened 4m rail if the cut is no longer than 4m, otherwise onto a newly
    opened rail: 4m when the cut fits one, 6m when it does not. Every length must be <= 6m.

    Args:
        lengths: Cut lengths in m
        purposes: Purpose label for each length; all generic support rail when omitted

    Returns:
        Rails in the order they were opened
    """
    if purposes is None:
        purposes = [GENERIC_RAIL_PURPOSE] * len(lengths)
    if len(purposes) != len(lengths):
        raise ValueError(f"Got {len(purposes)} purposes for {len(lengths)} cut lengths")

    small, large = RailStockKind.FOUR_METER, RailStockKind.SIX_METER
    rails: list[Rail] = []
    # Stable sort keeps equal lengths in input order
    for i in sorted(range(len(lengths)), key=lambda i: -lengths[i]):
        length = lengths[i]
        if length > large.length_m:
            raise ValueError(f"Cut of {length}m is longer than the largest rail stock ({large.label})")

        idx = _first_fit(rails, length, large)
        if idx is None and length <= small.length_m:
            idx = _first_fit(rails, length, small)
        if idx is None:
            rails.append(Rail(kind=small if length <= small.length_m else large))
            idx = len(rails) - 1
        rails[idx].add_cut(length, purposes[i])
    return rails


def aggregate_cuts(rails: list[Rail]) -> list[RailCut]:
    """Identical (length, stock, purpose) cuts collapsed into one record each; 4m stock first, longest first."""
    counts = Counter()
    for rail in rails:
        for length, purpose in zip(rail.cuts, rail.purposes):
            counts[(length, rail.kind, purpose)] += 1

    ordered_keys = sorted(counts, key=lambda k: (_STOCK_DISPLAY_ORDER[k[1]], -k[0], k[2]))
    return [RailCut(length=length, count=counts[(length, kind, purpose)], source=kind, purpose=purpose)
            for length, kind, purpose in ordered_keys]


def optimize_rail_cuts(rows: int,
                       columns: int,
                       spacing: float,
                       panel_spec: PanelSpec = PanelSpec(),
                       oversize_policy: OversizePolicy = OversizePolicy.FLAG) -> RailCutPlan:
    """
    Cutting plan for the mounting rails of a rows x columns panel grid.

    Lengths longer than a 6m rail are either reported in `unpackable_cuts` (FLAG) or cut into 6m segments
    plus a remainder joined with splices (SPLICE). Leftovers shorter than 0.5m count as wastage; longer
    ones are reusable offcuts.

    Args:
        rows: Panel rows in the grid
        columns: Panel columns in the grid
        spacing: Gap between adjacent panels (m)
        panel_spec: Panel dimensions
        oversize_policy: Treatment of lengths longer than the largest stock rail

    Returns:
        RailCutPlan with the packed rails, aggregated cuts, stock counts and wastage
    """
    required = build_required_cuts(rows, columns, spacing, panel_spec)
    if not required:
        return RailCutPlan()

    horizontal_length, vertical_length = required_rail_lengths(rows, columns, spacing, panel_spec)
    max_stock = max(kind.length_m for kind in RailStockKind)

    packable = []
    packable_purposes = []
    oversize = Counter()
    splice_joints = 0
    for length in required:
        if length <= max_stock:
            packable.append(length)
            packable_purposes.append(classify_cut_purpose(length, horizontal_length, vertical_length))
        elif oversize_policy == OversizePolicy.SPLICE:
            # Segments are tagged here; a remainder may coincide with another run's length
            segments = split_into_segments(length, max_stock)
            packable.extend(segments)
            packable_purposes.extend([GENERIC_RAIL_PURPOSE] * len(segments))
            splice_joints += len(segments) - 1
        else:
            oversize[length] += 1

    unpackable_cuts = [UnpackableCut(length=length, count=count,
                                     purpose=classify_cut_purpose(length, horizontal_length, vertical_length))
                       for length, count in sorted(oversize.items(), key=lambda kv: -kv[0])]
    for cut in unpackable_cuts:
        logger.warning("%d x %.3fm %s exceed the %.1fm rail stock and were not packed",
                       cut.count, cut.length, cut.purpose.lower(), max_stock)

    rails = pack_cuts(packable, packable_purposes)
    total_wastage = math.fsum(rail.remaining_length for rail in rails if rail.is_waste)

    plan = RailCutPlan(cuts=aggregate_cuts(rails),
                       rails_4m=sum(1 for r in rails if r.kind == RailStockKind.FOUR_METER),
                       rails_6m=sum(1 for r in rails if r.kind == RailStockKind.SIX_METER),
                       total_wastage_m=total_wastage,
                       rails=rails,
                       unpackable_cuts=unpackable_cuts,
                       splice_joints=splice_joints)
    logger.debug("Rail plan for %dx%d grid: %d x 4m, %d x 6m, %.3fm wastage",
                 rows, columns, plan.rails_4m, plan.rails_6m, plan.total_wastage_m)
    return plan
