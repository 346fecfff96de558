import logging
from functools import partial
from multiprocessing import Pool
from typing import Callable, List, Optional, Sequence

import attrs

from solaroptimizer.cost_estimator import build_material_plan
from solaroptimizer.geometry.geometry_utils import (calculate_roof_azimuth, calculate_optimal_azimuth,
                                                    calculate_optimal_tilt, estimate_roof_pitch,
                                                    get_orientation_from_azimuth, calculate_polygon_area,
                                                    calculate_polygon_centroid)
from solaroptimizer.layout_optimizer import (calculate_panel_quantity, calculate_max_panels, roof_footprint,
                                             optimize_panel_layout, DEFAULT_PANEL_SPACING_M,
                                             DEFAULT_USABLE_ROOF_FRACTION)
from solaroptimizer.pricing.pricing_utils import PriceSchedule, load_price_schedule
from solaroptimizer.production.production_utils import (calculate_peak_sun_hours, calculate_shading_factor,
                                                        estimate_annual_production, calculate_actual_production,
                                                        calculate_daily_average, DEFAULT_SYSTEM_EFFICIENCY)
from solaroptimizer.rail_optimizer import optimize_rail_cuts
from solaroptimizer.solar_interface import (AnalysisResult, Coordinate, OversizePolicy, PanelSpec, RoofType)

logger = logging.getLogger(__name__)

ShadingModel = Callable[[float, float], float]


def _usable_fraction(instance, attribute, value):
    if not 0 < value <= 1:
        raise ValueError(f"{attribute.name} must be in (0, 1], got {value}")


def _non_negative(instance, attribute, value):
    if value < 0:
        raise ValueError(f"{attribute.name} must be non-negative, got {value}")


@attrs.define
class AnalysisRequest:
    """
    Everything the caller knows about a roof. Values are assumed to be validated upstream (coordinate ranges,
    positive areas); only the configuration knobs are checked here.
    """
    roof_area: float  # m^2
    target_capacity_kw: float
    latitude: float
    longitude: float
    roof_type: str = "tile"
    roof_polygon: Optional[Sequence[Coordinate]] = None
    panel_wattage_w: float = 330.0
    panel_spacing_m: float = attrs.field(default=DEFAULT_PANEL_SPACING_M, validator=_non_negative)
    usable_roof_fraction: float = attrs.field(default=DEFAULT_USABLE_ROOF_FRACTION, validator=_usable_fraction)
    system_efficiency: float = DEFAULT_SYSTEM_EFFICIENCY
    shading_factor: Optional[float] = None  # Overrides the shading model when set
    oversize_policy: OversizePolicy = OversizePolicy.FLAG
    installation_type: str = "flush-mount"

    @classmethod
    def from_roof_polygon(cls, roof_polygon: Sequence[Coordinate], target_capacity_kw: float, **kwargs) -> 'AnalysisRequest':
        """Request for a traced roof outline: area and location are taken from the polygon."""
        centroid = calculate_polygon_centroid(roof_polygon)
        return cls(roof_area=calculate_polygon_area(roof_polygon),
                   target_capacity_kw=target_capacity_kw,
                   latitude=centroid.latitude,
                   longitude=centroid.longitude,
                   roof_polygon=list(roof_polygon),
                   **kwargs)


class AnalysisRunner:
    """
    Runs one roof analysis: geometry, panel count and layout, rail cutting plan, production and costs.

    Pure computation; a runner can be reused and shared across threads.
    """

    def __init__(self,
                 prices: Optional[PriceSchedule] = None,
                 panel_spec: Optional[PanelSpec] = None,
                 shading_model: ShadingModel = calculate_shading_factor):
        self.prices = prices or load_price_schedule()
        self.panel_spec = panel_spec or PanelSpec()
        self.shading_model = shading_model

    def run_analysis(self, request: AnalysisRequest) -> AnalysisResult:
        logger.info("Performing solar analysis at (%.5f, %.5f) for %.2fkW",
                    request.latitude, request.longitude, request.target_capacity_kw)
        warnings: List[str] = []
        panel_spec = attrs.evolve(self.panel_spec, wattage_w=request.panel_wattage_w)
        spacing = request.panel_spacing_m

        # Geometry
        roof_type = RoofType.parse(request.roof_type)
        if roof_type == RoofType.UNKNOWN:
            msg = f"Unrecognised roof type '{request.roof_type}'; using default pitch and tile mounting rules"
            logger.warning(msg)
            warnings.append(msg)

        optimal_azimuth = calculate_optimal_azimuth(request.latitude)
        polygon_azimuth = calculate_roof_azimuth(request.roof_polygon)
        roof_azimuth = polygon_azimuth if polygon_azimuth is not None else optimal_azimuth
        roof_orientation = get_orientation_from_azimuth(roof_azimuth)

        # Panel count
        requested_panels = max(calculate_panel_quantity(request.target_capacity_kw, panel_spec.wattage_w), 0)
        max_panels = calculate_max_panels(request.roof_area, request.usable_roof_fraction, spacing, panel_spec)
        panel_count = requested_panels
        clamped = requested_panels > max_panels
        if clamped:
            msg = f"Requested {requested_panels} panels but only {max_panels} fit on the roof"
            logger.warning(msg)
            warnings.append(msg)
            panel_count = max_panels
        system_capacity_kw = panel_count * panel_spec.wattage_w / 1000.0

        # Production
        peak_sun_hours = calculate_peak_sun_hours(request.latitude)
        if request.shading_factor is not None:
            shading_factor = request.shading_factor
        else:
            shading_factor = self.shading_model(request.latitude, request.longitude)
        theoretical = estimate_annual_production(panel_count, panel_spec.wattage_w, peak_sun_hours,
                                                 request.system_efficiency)
        annual_production = calculate_actual_production(theoretical, shading_factor)

        # Layout and rails
        roof_width, roof_length = roof_footprint(request.roof_area)
        layout = optimize_panel_layout(roof_width, roof_length, panel_count, spacing, panel_spec)
        if not layout.fits_roof:
            warnings.append(f"No grid of {panel_count} panels fits the roof; "
                            f"falling back to {layout.rows} x {layout.columns}")

        rail_cut_plan = optimize_rail_cuts(layout.rows, layout.columns, spacing, panel_spec, request.oversize_policy)
        for cut in rail_cut_plan.unpackable_cuts:
            warnings.append(f"{cut.count} x {cut.length:.2f}m {cut.purpose.lower()} longer than the largest "
                            f"rail stock; order spliced rails for these runs")

        material_plan = build_material_plan(panel_count=panel_count,
                                            system_capacity_kw=system_capacity_kw,
                                            roof_type=roof_type,
                                            rail_cut_plan=rail_cut_plan,
                                            prices=self.prices,
                                            panel_spec=panel_spec,
                                            installation_type=request.installation_type)

        logger.info("Roof orientation: %s (%.1f deg), optimal for location: %s (%.1f deg)",
                    roof_orientation.value, roof_azimuth,
                    get_orientation_from_azimuth(optimal_azimuth).value, optimal_azimuth)
        logger.info("Solar analysis complete: %d panels, %.2fkW system, %.0fkWh/year",
                    panel_count, system_capacity_kw, annual_production)

        return AnalysisResult(
            roof_area_m2=request.roof_area,
            roof_azimuth_deg=roof_azimuth,
            roof_azimuth_from_polygon=polygon_azimuth is not None,
            optimal_azimuth_deg=optimal_azimuth,
            optimal_tilt_deg=calculate_optimal_tilt(request.latitude),
            roof_pitch_deg=estimate_roof_pitch(roof_type),
            roof_orientation=roof_orientation,
            roof_type=roof_type,
            usable_area_m2=request.roof_area * request.usable_roof_fraction,
            panel_wattage_w=panel_spec.wattage_w,
            panel_spacing_m=spacing,
            requested_panel_count=requested_panels,
            max_panel_count=max_panels,
            panel_count=panel_count,
            panel_count_clamped=clamped,
            system_capacity_kw=system_capacity_kw,
            layout=layout,
            peak_sun_hours=peak_sun_hours,
            shading_factor=shading_factor,
            theoretical_production_kwh=theoretical,
            annual_production_kwh=annual_production,
            daily_average_kwh=calculate_daily_average(annual_production),
            material_plan=material_plan,
            warnings=warnings,
        )


def _run_single_analysis(request: AnalysisRequest, prices: Optional[PriceSchedule] = None,
                         panel_spec: Optional[PanelSpec] = None,
                         shading_model: ShadingModel = calculate_shading_factor) -> AnalysisResult:
    """Module-level so it can be sent to worker processes."""
    return AnalysisRunner(prices=prices, panel_spec=panel_spec, shading_model=shading_model).run_analysis(request)


def run_analyses(requests: Sequence[AnalysisRequest],
                 prices: Optional[PriceSchedule] = None,
                 panel_spec: Optional[PanelSpec] = None,
                 shading_model: ShadingModel = calculate_shading_factor,
                 parallelize: bool = False,
                 n_jobs: Optional[int] = None) -> List[AnalysisResult]:
    """
    Analyse independent roofs, sequentially or in a process pool. Results are in request order.

    Args:
        requests: Roofs to analyse
        prices: Price schedule shared by every analysis; the packaged default when omitted
        panel_spec: Panel dimensions shared by every analysis
        shading_model: (latitude, longitude) -> shading factor; must be a module-level function when
            parallelize is set so it can be pickled
        parallelize: Run in a multiprocessing Pool
        n_jobs: Number of worker processes (None = one per CPU)

    Returns:
        One AnalysisResult per request
    """
    prices = prices or load_price_schedule()
    run_one = partial(_run_single_analysis, prices=prices, panel_spec=panel_spec, shading_model=shading_model)
    if parallelize and len(requests) > 1:
        with Pool(processes=n_jobs) as pool:
            return pool.map(run_one, requests)
    return [run_one(request) for request in requests]


def analyze(roof_area: float,
            target_capacity_kw: float,
            latitude: float,
            longitude: float,
            roof_type: str = "tile",
            roof_polygon: Optional[Sequence[Coordinate]] = None,
            panel_wattage_w: float = 330.0,
            panel_spacing_m: float = DEFAULT_PANEL_SPACING_M,
            usable_roof_fraction: float = DEFAULT_USABLE_ROOF_FRACTION,
            prices: Optional[PriceSchedule] = None,
            **request_kwargs) -> AnalysisResult:
    """
    Size a solar installation for one roof.

    Args:
        roof_area: Roof area (m^2)
        target_capacity_kw: Desired array capacity (kW)
        latitude: Roof latitude (degrees, negative in the southern hemisphere)
        longitude: Roof longitude (degrees)
        roof_type: "flat", "tile" or "metal"; anything else is treated as unknown
        roof_polygon: Traced roof outline; its longest edge sets the roof azimuth
        panel_wattage_w: Rated panel power (W)
        panel_spacing_m: Gap between adjacent panels (m)
        usable_roof_fraction: Share of the roof area available for panels, in (0, 1]
        prices: Price schedule; the packaged default when omitted
        **request_kwargs: Any other AnalysisRequest field (shading_factor, oversize_policy, ...)

    Returns:
        AnalysisResult with geometry, layout, rail cutting plan, production and material plan
    """
    request = AnalysisRequest(roof_area=roof_area,
                              target_capacity_kw=target_capacity_kw,
                              latitude=latitude,
                              longitude=longitude,
                              roof_type=roof_type,
                              roof_polygon=roof_polygon,
                              panel_wattage_w=panel_wattage_w,
                              panel_spacing_m=panel_spacing_m,
                              usable_roof_fraction=usable_roof_fraction,
                              **request_kwargs)
    return AnalysisRunner(prices=prices).run_analysis(request)
