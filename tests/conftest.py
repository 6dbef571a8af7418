import matplotlib
matplotlib.use("Agg")

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon, box


SITES = [
    {"site": "CB-01", "lat": 48.83, "long": -125.14, "temp": 12},
    {"site": "CB-02", "lat": 48.86, "long": -125.11, "temp": 14},
]


@pytest.fixture
def sites_df():
    return pd.DataFrame(SITES)


@pytest.fixture
def sites_xlsx(tmp_path):
    path = tmp_path / "sites.xlsx"
    pd.DataFrame(SITES).to_excel(path, index=False)
    return path


@pytest.fixture
def coastline_gdf():
    """Mainland block east of the sites plus a small island, no CRS."""
    mainland = Polygon([(-125.12, 48.0), (-124.0, 48.0), (-124.0, 49.6),
                        (-125.30, 49.6), (-125.12, 48.9)])
    island = box(-125.25, 48.80, -125.20, 48.84)
    return gpd.GeoDataFrame({"name": ["mainland", "island"]},
                            geometry=[mainland, island])


@pytest.fixture
def basemap_dir(tmp_path, coastline_gdf):
    shp_dir = tmp_path / "basemap"
    shp_dir.mkdir()
    coastline_gdf.to_file(shp_dir / "coast.shp")
    return shp_dir
