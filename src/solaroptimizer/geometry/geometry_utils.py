from typing import Sequence, Optional
import numpy as np

from solaroptimizer.solar_interface import Coordinate, Orientation, PanelSpec, RoofType

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE_LAT = 111320.0

ROOF_PITCH_DEG = {
    RoofType.FLAT: 5.0,  # Drainage fall only
    RoofType.TILE: 22.5,
    RoofType.METAL: 20.0,
    RoofType.UNKNOWN: 20.0,
}

# Sectors of 45 degrees, starting at North and centred on each compass point
ORIENTATION_SECTORS = [Orientation.NORTH, Orientation.NORTH_EAST, Orientation.EAST, Orientation.SOUTH_EAST,
                       Orientation.SOUTH, Orientation.SOUTH_WEST, Orientation.WEST, Orientation.NORTH_WEST]


def _polygon_arrays(polygon: Sequence[Coordinate]) -> tuple[np.ndarray, np.ndarray]:
    lats = np.array([c.latitude for c in polygon], dtype=float)
    lons = np.array([c.longitude for c in polygon], dtype=float)
    return lats, lons


def calculate_roof_azimuth(polygon: Optional[Sequence[Coordinate]]) -> Optional[float]:
    """
    Bearing of the longest roof edge, in degrees [0, 360) with North = 0.

    Edges are measured on a local flat projection: longitude deltas are scaled by the cosine of the
    mean latitude. The closing edge (last point back to the first) is included for 3+ points.
    Returns None if the polygon has fewer than 2 points; callers should fall back to
    calculate_optimal_azimuth.
    """
    if polygon is None or len(polygon) < 2:
        return None

    lats, lons = _polygon_arrays(polygon)
    if len(polygon) == 2:
        d_lat = np.diff(lats)
        d_lon = np.diff(lons)
    else:
        d_lat = np.roll(lats, -1) - lats
        d_lon = np.roll(lons, -1) - lons

    lon_scale = np.cos(np.radians(lats.mean()))
    dx = d_lon * lon_scale  # East
    dy = d_lat  # North
    longest = int(np.argmax(np.hypot(dx, dy)))  # argmax keeps the first edge on ties

    bearing = float(np.degrees(np.arctan2(dx[longest], dy[longest])) % 360.0)
    if bearing >= 360.0:
        bearing -= 360.0
    return bearing


def calculate_optimal_azimuth(latitude: float) -> float:
    # Panels face the equator
    return 0.0 if latitude < 0 else 180.0


def calculate_optimal_tilt(latitude: float) -> float:
    return abs(latitude)


def estimate_roof_pitch(roof_type: 'RoofType | str') -> float:
    return ROOF_PITCH_DEG[RoofType.parse(roof_type)]


def get_orientation_from_azimuth(azimuth: float) -> Orientation:
    azimuth = azimuth % 360.0
    sector = int(((azimuth + 22.5) % 360.0) // 45.0)
    return ORIENTATION_SECTORS[sector]


def calculate_distance(start: Coordinate, end: Coordinate) -> float:
    """Great-circle (haversine) distance in m."""
    lat1, lat2 = np.radians(start.latitude), np.radians(end.latitude)
    d_lat = lat2 - lat1
    d_lon = np.radians(end.longitude - start.longitude)
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(d_lon / 2) ** 2
    return float(2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a)))


def calculate_polygon_area(polygon: Sequence[Coordinate]) -> float:
    """Shoelace area in m^2 on an equirectangular projection. Good enough for a single roof."""
    if polygon is None or len(polygon) < 3:
        return 0.0
    lats, lons = _polygon_arrays(polygon)
    x = np.radians(lons) * EARTH_RADIUS_M * np.cos(np.radians(lats))
    y = np.radians(lats) * EARTH_RADIUS_M
    area = np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)
    return float(abs(area) / 2.0)


def calculate_polygon_centroid(polygon: Sequence[Coordinate]) -> Coordinate:
    """Vertex average, not the area centroid."""
    if not polygon:
        return Coordinate(0.0, 0.0)
    lats, lons = _polygon_arrays(polygon)
    return Coordinate(float(lats.mean()), float(lons.mean()))


def _offset_coordinate(origin: Coordinate, dx: float, dy: float) -> Coordinate:
    d_lat = dy / METERS_PER_DEGREE_LAT
    d_lon = dx / (METERS_PER_DEGREE_LAT * np.cos(np.radians(origin.latitude)))
    return Coordinate(float(origin.latitude + d_lat), float(origin.longitude + d_lon))


def calculate_panel_positions(center: Coordinate,
                              rows: int,
                              columns: int,
                              spacing: float,
                              azimuth: float,
                              panel_spec: PanelSpec = PanelSpec()) -> list[list[Coordinate]]:
    """
    Corner coordinates of every panel in a rows x columns grid centred on `center` and rotated by
    `azimuth` degrees. Corners are ordered top-left, top-right, bottom-right, bottom-left; panels
    are ordered row by row.
    """
    width, height = panel_spec.width_m, panel_spec.height_m
    array_width = columns * width + (columns - 1) * spacing
    array_height = rows * height + (rows - 1) * spacing
    start_x = -array_width / 2
    start_y = array_height / 2

    theta = np.radians(azimuth)
    rotation = np.array([[np.cos(theta), -np.sin(theta)],
                         [np.sin(theta), np.cos(theta)]])
    corner_offsets = np.array([[-width / 2, height / 2],
                               [width / 2, height / 2],
                               [width / 2, -height / 2],
                               [-width / 2, -height / 2]])

    panels = []
    for row in range(rows):
        for col in range(columns):
            local_center = np.array([start_x + col * (width + spacing) + width / 2,
                                     start_y - row * (height + spacing) - height / 2])
            corners = (local_center + corner_offsets) @ rotation.T
            panels.append([_offset_coordinate(center, x, y) for x, y in corners])
    return panels
