import math

import pytest

from solaroptimizer.layout_optimizer import (calculate_panel_quantity, calculate_max_panels, optimize_panel_layout,
                                             roof_footprint, effective_area_per_panel)
from solaroptimizer.solar_interface import LayoutGrid, PanelSpec


@pytest.mark.parametrize("target_kw,wattage,expected", [
    (6.6, 330, 20),
    (5.0, 330, 16),
    (3.3, 330, 10),
    (10.0, 400, 25),
    (0.0, 330, 0),
])
def test_calculate_panel_quantity(target_kw, wattage, expected):
    assert calculate_panel_quantity(target_kw, wattage) == expected


class TestMaxPanels:

    def test_effective_area_includes_spacing_strip(self):
        assert effective_area_per_panel(0.05) == pytest.approx(1.7 + 0.05 * 2 * 2.7)
        assert effective_area_per_panel(0.0) == pytest.approx(1.7)

    def test_max_panels(self):
        # 60m2 * 0.8 / 1.97m2
        assert calculate_max_panels(60.0, 0.8) == 24
        assert calculate_max_panels(20.0, 0.8) == 8

    def test_tiny_roof(self):
        assert calculate_max_panels(1.0, 0.8) == 0
        assert calculate_max_panels(0.0, 0.8) == 0

    def test_custom_panel(self):
        panel = PanelSpec(width_m=1.1, height_m=2.0, wattage_w=450)
        assert calculate_max_panels(100.0, 1.0, spacing=0.0, panel_spec=panel) == math.floor(100.0 / 2.2)


class TestOptimizePanelLayout:

    def test_square_roof(self):
        width, length = roof_footprint(60.0)
        layout = optimize_panel_layout(width, length, 20)
        assert layout == LayoutGrid(rows=3, columns=7, panel_spacing_m=0.05, fits_roof=True)
        assert layout.slots >= 20

    def test_prefers_fewest_rows(self):
        # A long, shallow roof takes everything in a single row
        layout = optimize_panel_layout(30.0, 2.0, 12)
        assert (layout.rows, layout.columns) == (1, 12)

    def test_zero_panels(self):
        layout = optimize_panel_layout(10.0, 10.0, 0)
        assert (layout.rows, layout.columns) == (0, 0)
        assert layout.fits_roof

    def test_fallback_when_nothing_fits(self):
        layout = optimize_panel_layout(1.0, 1.0, 4)
        assert (layout.rows, layout.columns) == (1, 4)
        assert not layout.fits_roof

    @pytest.mark.parametrize("roof_area,panel_count", [(20, 8), (40, 12), (60, 20), (100, 33), (150, 50), (250, 1)])
    def test_chosen_layout_fits(self, roof_area, panel_count):
        spacing = 0.05
        width, length = roof_footprint(roof_area)
        layout = optimize_panel_layout(width, length, panel_count, spacing)
        assert layout.fits_roof
        assert layout.rows * layout.columns >= panel_count
        assert layout.columns * (1.0 + spacing) <= width
        assert layout.rows * (1.7 + spacing) <= length

    def test_deterministic(self):
        assert optimize_panel_layout(9.0, 7.0, 17) == optimize_panel_layout(9.0, 7.0, 17)


def test_roof_footprint_is_square():
    width, length = roof_footprint(49.0)
    assert width == pytest.approx(7.0)
    assert length == pytest.approx(7.0)
    assert roof_footprint(0.0) == (0.0, 0.0)
