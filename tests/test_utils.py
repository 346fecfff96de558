import math

import numpy as np

from solaroptimizer.analysis_runner import AnalysisRequest
from solaroptimizer.geometry.geometry_utils import METERS_PER_DEGREE_LAT
from solaroptimizer.solar_interface import Coordinate, RailCutPlan, RAIL_CUT_TOLERANCE_M

ADELAIDE = Coordinate(-34.9285, 138.6007)


def rectangular_roof(origin: Coordinate = ADELAIDE, east_m: float = 10.0, north_m: float = 6.0) -> list[Coordinate]:
    """Rectangle traced SW -> SE -> NE -> NW, with its long side running east-west when east_m > north_m."""
    d_lat = north_m / METERS_PER_DEGREE_LAT
    d_lon = east_m / (METERS_PER_DEGREE_LAT * np.cos(np.radians(origin.latitude)))
    lat, lon = origin.latitude, origin.longitude
    return [Coordinate(lat, lon),
            Coordinate(lat, lon + d_lon),
            Coordinate(lat + d_lat, lon + d_lon),
            Coordinate(lat + d_lat, lon)]


def adelaide_request(**kwargs) -> AnalysisRequest:
    params = dict(roof_area=60.0, target_capacity_kw=6.6, latitude=ADELAIDE.latitude,
                  longitude=ADELAIDE.longitude, roof_type='tile')
    params.update(kwargs)
    return AnalysisRequest(**params)


def assert_rail_plan_invariants(plan: RailCutPlan):
    for rail in plan.rails:
        assert math.isclose(sum(rail.cuts) + rail.remaining_length, rail.total_length, abs_tol=1e-6)
        assert rail.remaining_length >= 0
        assert sum(rail.cuts) <= rail.total_length + RAIL_CUT_TOLERANCE_M
        assert len(rail.purposes) == len(rail.cuts)

    assert plan.total_wastage_m <= sum(r.remaining_length for r in plan.rails) + 1e-9
    assert plan.rails_4m + plan.rails_6m == len(plan.rails)
    assert sum(c.count for c in plan.cuts) == sum(len(r.cuts) for r in plan.rails)
