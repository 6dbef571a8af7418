"""
basemap.py - Shapefile basemap loading and CRS handling

The basemap is a polygon/line layer (e.g. coastline outlines) drawn under
the site markers. It is read once with geopandas and only ever copied.
"""

import geopandas as gpd
from pathlib import Path
from shapely.geometry import box


BASEMAP_CRS = "EPSG:4326"   # WGS84 longitude/latitude


def find_shapefile(path: Path, layer: str = None) -> Path:
    """Resolve a .shp file from a file path or a directory of shapefile parts."""
    if path.is_file():
        return path

    shapefiles = sorted(path.glob("*.shp"))
    if layer is not None:
        shapefiles = [p for p in shapefiles if p.stem == layer]
    if not shapefiles:
        target = f"{layer}.shp" if layer else "shapefile (.shp)"
        raise FileNotFoundError(f"No {target} found in {path}")
    if len(shapefiles) > 1:
        names = ', '.join(p.name for p in shapefiles)
        raise ValueError(f"Several shapefiles in {path} ({names}); pick one with layer=")
    return shapefiles[0]


def load_basemap(path, layer: str = None) -> gpd.GeoDataFrame:
    """
    Load a basemap layer from a shapefile or a shapefile directory.

    Parameters
    ----------
    path : str or Path
        .shp file, or a directory holding the .shp/.shx/.dbf/.prj parts
    layer : str, optional
        Shapefile name (without suffix) when the directory holds several

    Returns
    -------
    gpd.GeoDataFrame
        Basemap features, CRS as stored in the .prj (may be None)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Basemap not found: {path}")

    shp_path = find_shapefile(path, layer=layer)
    print(f"Loading basemap from {shp_path.name}...")
    gdf = gpd.read_file(shp_path)

    if gdf.empty:
        raise ValueError(f"Basemap {shp_path.name} has no features")
    print(f"  Features: {len(gdf)}, CRS: {gdf.crs.to_string() if gdf.crs else 'undefined'}")
    return gdf


def set_basemap_crs(gdf: gpd.GeoDataFrame, crs: str = BASEMAP_CRS) -> gpd.GeoDataFrame:
    """Assign `crs` to a layer without one, or reproject a layer that has another."""
    if gdf.crs is None:
        print(f"  Assigning CRS {crs}")
        return gdf.set_crs(crs)
    if gdf.crs == crs:
        return gdf.copy()
    print(f"  Reprojecting {gdf.crs.to_string()} -> {crs}")
    return gdf.to_crs(crs)


def clip_basemap(gdf: gpd.GeoDataFrame, extent: dict) -> gpd.GeoDataFrame:
    """Clip the basemap to an extent dict given in the layer's lon/lat CRS."""
    viewport = box(extent['lon_min'], extent['lat_min'],
                   extent['lon_max'], extent['lat_max'])
    clipped = gpd.clip(gdf, viewport, keep_geom_type=True)
    print(f"  Clipped to extent: {extent['lon_min']:.3f} to {extent['lon_max']:.3f}°E, "
          f"{extent['lat_min']:.3f} to {extent['lat_max']:.3f}°N ({len(clipped)} features)")
    return clipped
