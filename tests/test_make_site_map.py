import cartopy.crs as ccrs
import geopandas as gpd
import matplotlib.image as mpimg
import matplotlib.pyplot as plt
import numpy as np
import pytest
from PIL import Image
from shapely.geometry import LineString, box

import make_site_map
from make_site_map import (INSET_ANCHOR, LAND_COLOR, add_inset, make_site_map as run_pipeline,
                           plot_basemap, temperature_cmap, temperature_norm,
                           validate_config)


def test_default_output_is_4500_by_3300(basemap_dir, sites_xlsx, tmp_path):
    output = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "out" / "site_map.png",
                          figsize=(7.5, 5.5), dpi=600)
    assert output.exists()
    with Image.open(output) as img:
        assert img.format == "PNG"
        assert img.size == (4500, 3300)


def test_render_is_pixel_identical(basemap_dir, sites_xlsx, tmp_path):
    first = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "a.png", dpi=60)
    second = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "b.png", dpi=60)
    assert np.array_equal(mpimg.imread(first), mpimg.imread(second))


def test_inset_changes_output(basemap_dir, sites_xlsx, tmp_path):
    low = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "low.png", dpi=60)
    moved = dict(INSET_ANCHOR, x=0.4, y=0.6)
    high = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "high.png", dpi=60,
                        inset_anchor=moved)
    assert not np.array_equal(mpimg.imread(low), mpimg.imread(high))


def test_sites_without_temperature_are_rendered(basemap_dir, tmp_path):
    sites = tmp_path / "sites.csv"
    sites.write_text("site,lat,long,temp\nA,48.83,-125.14,\nB,48.86,-125.11,\n")
    output = run_pipeline(basemap_dir, sites, tmp_path / "no_temp.png", dpi=60)
    assert output.exists()


def test_figure_closed_after_success(basemap_dir, sites_xlsx, tmp_path):
    plt.close('all')
    run_pipeline(basemap_dir, sites_xlsx, tmp_path / "map.png", dpi=60)
    assert plt.get_fignums() == []


def test_figure_closed_when_rendering_fails(basemap_dir, sites_xlsx, tmp_path, monkeypatch):
    def broken_overview(*args, **kwargs):
        raise RuntimeError("overview failed")

    plt.close('all')
    monkeypatch.setattr(make_site_map, "render_overview", broken_overview)
    with pytest.raises(RuntimeError, match="overview failed"):
        run_pipeline(basemap_dir, sites_xlsx, tmp_path / "map.png", dpi=60)
    assert plt.get_fignums() == []
    assert not (tmp_path / "map.png").exists()


def test_missing_basemap(sites_xlsx, tmp_path):
    with pytest.raises(FileNotFoundError, match="Basemap"):
        run_pipeline(tmp_path / "missing", sites_xlsx, tmp_path / "map.png")


def test_missing_site_table(basemap_dir, tmp_path):
    with pytest.raises(FileNotFoundError, match="Site table"):
        run_pipeline(basemap_dir, tmp_path / "missing.xlsx", tmp_path / "map.png")


def test_site_table_missing_columns(basemap_dir, tmp_path):
    sites = tmp_path / "sites.csv"
    sites.write_text("site,lat\nA,48.83\n")
    with pytest.raises(ValueError, match="missing columns"):
        run_pipeline(basemap_dir, sites, tmp_path / "map.png")
    assert not (tmp_path / "map.png").exists()


@pytest.mark.parametrize("config", [
    {"margin": 0},
    {"margin": -0.05},
    {"overview_margin": 0},
    {"inset_anchor": dict(INSET_ANCHOR, x=1.5)},
    {"inset_anchor": dict(INSET_ANCHOR, height=-0.1)},
    {"dpi": 0},
    {"dpi": float("nan")},
    {"dpi": float("inf")},
    {"dpi": True},
    {"figsize": (7.5, 0)},
    {"figsize": (float("inf"), 5.5)},
    {"figsize": (True, 5.5)},
    {"figsize": (7.5, float("nan"))},
    {"temp_color_low": "not-a-color"},
    {"crs": "EPSG:3857"},
    {"crs": "not-a-crs"},
    {"inset_anchor": (0.055, 0.251, 0.5)},
])
def test_invalid_config_rejected_before_reading_inputs(tmp_path, config):
    # Inputs do not exist: a ValueError shows validation ran first
    with pytest.raises(ValueError):
        run_pipeline(tmp_path / "missing_dir", tmp_path / "missing.xlsx",
                     tmp_path / "map.png", **config)


def test_validate_config_defaults():
    validate_config()


def test_add_inset_position():
    fig = plt.figure(figsize=(7.5, 5.5))
    try:
        ax = add_inset(fig, {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4})
        pos = ax.get_position(original=True)
        assert (pos.x0, pos.y0) == pytest.approx((0.1, 0.2))
        assert (pos.width, pos.height) == pytest.approx((0.3, 0.4))
    finally:
        plt.close(fig)


def test_add_inset_rejects_outside_figure():
    fig = plt.figure()
    try:
        with pytest.raises(ValueError):
            add_inset(fig, {"x": -0.2, "y": 0.2, "width": 0.3, "height": 0.4})
    finally:
        plt.close(fig)


def test_temperature_cmap_endpoints():
    cmap = temperature_cmap("#000000", "#ffffff")
    assert cmap(0.0)[:3] == pytest.approx((0.0, 0.0, 0.0))
    assert cmap(1.0)[:3] == pytest.approx((1.0, 1.0, 1.0))


def test_temperature_norm(sites_df):
    norm = temperature_norm(sites_df['temp'])
    assert (norm.vmin, norm.vmax) == (12, 14)


def test_temperature_norm_single_value(sites_df):
    norm = temperature_norm(sites_df['temp'].iloc[:1])
    assert norm.vmax > norm.vmin


def test_inset_anchor_tuple_renders(basemap_dir, sites_xlsx, tmp_path):
    output = run_pipeline(basemap_dir, sites_xlsx, tmp_path / "map.png", dpi=60,
                          inset_anchor=(0.055, 0.251, 0.5, 0.3))
    assert output.exists()


class RecordingAxes:
    def __init__(self):
        self.calls = []

    def set_facecolor(self, color):
        pass

    def add_geometries(self, geoms, **kwargs):
        self.calls.append((list(geoms), kwargs))


def test_plot_basemap_leaves_lines_unfilled():
    basemap = gpd.GeoDataFrame(geometry=[
        box(-125.3, 48.8, -125.2, 48.9),
        LineString([(-125.2, 48.8), (-125.1, 48.9)]),
    ], crs="EPSG:4326")
    ax = RecordingAxes()
    plot_basemap(ax, basemap, ccrs.PlateCarree())

    fills = {kwargs['facecolor']: [g.geom_type for g in geoms] for geoms, kwargs in ax.calls}
    assert fills == {LAND_COLOR: ["Polygon"], "none": ["LineString"]}


def test_line_basemap_renders(tmp_path, sites_xlsx):
    shp_dir = tmp_path / "coastline"
    shp_dir.mkdir()
    gpd.GeoDataFrame(geometry=[LineString([(-125.3, 48.7), (-125.0, 49.0)])]).to_file(
        shp_dir / "coastline.shp")
    output = run_pipeline(shp_dir, sites_xlsx, tmp_path / "lines.png", dpi=60)
    assert output.exists()
