import logging
import math

from solaroptimizer.solar_interface import LayoutGrid, PanelSpec

logger = logging.getLogger(__name__)

DEFAULT_PANEL_SPACING_M = 0.05
DEFAULT_USABLE_ROOF_FRACTION = 0.80

# Float noise in e.g. 6.6 * 1000 / 330 must not push a whole count up or down
_COUNT_ROUNDING_DIGITS = 9


def calculate_panel_quantity(target_capacity_kw: float, panel_wattage_w: float) -> int:
    """Number of panels needed to reach at least the target capacity."""
    return math.ceil(round(target_capacity_kw * 1000.0 / panel_wattage_w, _COUNT_ROUNDING_DIGITS))


def effective_area_per_panel(spacing: float = DEFAULT_PANEL_SPACING_M, panel_spec: PanelSpec = PanelSpec()) -> float:
    """Panel area plus a spacing strip along its perimeter (m^2)."""
    return panel_spec.area_m2 + spacing * 2 * (panel_spec.width_m + panel_spec.height_m)


def calculate_max_panels(roof_area_m2: float,
                         usable_fraction: float = DEFAULT_USABLE_ROOF_FRACTION,
                         spacing: float = DEFAULT_PANEL_SPACING_M,
                         panel_spec: PanelSpec = PanelSpec()) -> int:
    usable_area = roof_area_m2 * usable_fraction
    max_panels = math.floor(round(usable_area / effective_area_per_panel(spacing, panel_spec), _COUNT_ROUNDING_DIGITS))
    return max(max_panels, 0)


def roof_footprint(roof_area_m2: float) -> tuple[float, float]:
    """(width, length) of the roof assumed as a square of the given area."""
    if roof_area_m2 <= 0:
        return 0.0, 0.0
    roof_width = math.sqrt(roof_area_m2)
    return roof_width, roof_area_m2 / roof_width


def optimize_panel_layout(roof_width: float,
                          roof_length: float,
                          panel_count: int,
                          spacing: float = DEFAULT_PANEL_SPACING_M,
                          panel_spec: PanelSpec = PanelSpec()) -> LayoutGrid:
    """
    Pick the rows x columns grid for `panel_count` panels.

    Rows are tried in ascending order with columns = ceil(panel_count / rows). A candidate is feasible if
    columns * (panel width + spacing) fits the roof width and rows * (panel height + spacing) fits the roof
    length. The unused roof area is the same for every candidate, so the first feasible grid (fewest rows)
    is kept.

    If nothing fits, a single row of `panel_count` columns is returned with fits_roof=False.
    """
    if panel_count <= 0:
        return LayoutGrid(rows=0, columns=0, panel_spacing_m=spacing, fits_roof=True)

    best = None
    best_wasted_area = math.inf
    for rows in range(1, panel_count + 1):
        columns = math.ceil(panel_count / rows)
        required_width = columns * (panel_spec.width_m + spacing)
        required_length = rows * (panel_spec.height_m + spacing)
        if required_width > roof_width or required_length > roof_length:
            continue

        wasted_area = roof_width * roof_length - panel_count * panel_spec.area_m2
        if wasted_area < best_wasted_area:
            best_wasted_area = wasted_area
            best = (rows, columns)

    if best is None:
        logger.warning("No grid of %d panels fits a %.2fm x %.2fm roof; using a single row",
                       panel_count, roof_width, roof_length)
        return LayoutGrid(rows=1, columns=panel_count, panel_spacing_m=spacing, fits_roof=False)

    logger.debug("Layout for %d panels: %d rows x %d columns", panel_count, best[0], best[1])
    return LayoutGrid(rows=best[0], columns=best[1], panel_spacing_m=spacing, fits_roof=True)
