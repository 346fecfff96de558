DAYS_PER_YEAR = 365.0
DEFAULT_SYSTEM_EFFICIENCY = 0.85
DEFAULT_SHADING_FACTOR = 0.85  # 85% sun exposure

# (upper bound on |latitude|, peak sun hours). Coarse bands, not an irradiance model.
PEAK_SUN_HOUR_BANDS = [
    (10.0, 6.0),
    (25.0, 5.5),
    (40.0, 5.0),
    (50.0, 4.5),
]
HIGH_LATITUDE_PEAK_SUN_HOURS = 4.0


def calculate_peak_sun_hours(latitude: float) -> float:
    abs_latitude = abs(latitude)
    for upper_bound, peak_sun_hours in PEAK_SUN_HOUR_BANDS:
        if abs_latitude < upper_bound:
            return peak_sun_hours
    return HIGH_LATITUDE_PEAK_SUN_HOURS


def calculate_shading_factor(latitude: float, longitude: float) -> float:
    """
    Portion of unobstructed sun the array receives (0 = fully shaded, 1 = no shade).

    Constant placeholder: nearby buildings, trees and terrain are not modelled. Pass a different
    shading model to the AnalysisRunner to replace it.
    """
    return DEFAULT_SHADING_FACTOR


def estimate_annual_production(panel_count: int,
                               panel_wattage_w: float,
                               peak_sun_hours: float,
                               system_efficiency: float = DEFAULT_SYSTEM_EFFICIENCY) -> float:
    """Unshaded annual production in kWh."""
    daily_kwh = panel_count * panel_wattage_w * peak_sun_hours * system_efficiency / 1000.0
    return daily_kwh * DAYS_PER_YEAR


def calculate_actual_production(theoretical_production_kwh: float, shading_factor: float) -> float:
    return theoretical_production_kwh * shading_factor


def calculate_daily_average(annual_production_kwh: float) -> float:
    return annual_production_kwh / DAYS_PER_YEAR
