"""
map_extent.py - Map extent and inset placement helpers

Pure functions shared by the map scripts. Nothing here imports matplotlib
or cartopy, so the extent and layout arithmetic can be checked on its own.

Extents are dicts with 'lon_min', 'lon_max', 'lat_min', 'lat_max' keys,
the same layout the map scripts use to clip and frame panels.
"""

import numbers
from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd


MARGIN = 0.05   # degrees added on every side of the site extent
INSET_KEYS = ('x', 'y', 'width', 'height')
KM_PER_DEG_LAT = 111.32


def validate_margin(margin):
    """Reject non-numeric, non-finite or non-positive margins."""
    if isinstance(margin, bool) or not isinstance(margin, numbers.Real):
        raise ValueError(f"Margin must be a number, got {margin!r}")
    if not np.isfinite(margin) or margin <= 0:
        raise ValueError(f"Margin must be a positive number of degrees, got {margin}")
    return float(margin)


def compute_extent(sites, margin: float = MARGIN) -> dict:
    """Padded lon/lat extent around a collection of sites.

    Parameters
    ----------
    sites : pd.DataFrame or list of dict
        Site records with 'lat' and 'long' columns (degrees, WGS84)
    margin : float
        Padding added to each bound, in degrees (default: 0.05)

    Returns
    -------
    dict
        New extent dict; the margin is applied exactly, without rounding

    Raises
    ------
    ValueError
        If there are no sites (the extent would be undefined) or the
        margin is not positive
    """
    margin = validate_margin(margin)
    if not isinstance(sites, pd.DataFrame):
        sites = pd.DataFrame(list(sites))

    if sites.empty:
        raise ValueError("Cannot compute an extent from an empty site collection")
    for col in ('lat', 'long'):
        if col not in sites.columns:
            raise ValueError(f"Site records are missing the '{col}' column")

    lat = pd.to_numeric(sites['lat'], errors='raise')
    lon = pd.to_numeric(sites['long'], errors='raise')
    if lat.isna().any() or lon.isna().any():
        raise ValueError("Site coordinates contain missing values")
    if not (np.isfinite(lat).all() and np.isfinite(lon).all()):
        raise ValueError("Site coordinates must be finite")

    return {
        'lon_min': float(lon.min()) - margin,
        'lon_max': float(lon.max()) + margin,
        'lat_min': float(lat.min()) - margin,
        'lat_max': float(lat.max()) + margin,
    }


def pad_extent(extent: dict, margin: float) -> dict:
    """Grow an extent by `margin` degrees on each side, clamped to the globe."""
    margin = validate_margin(margin)
    return {
        'lon_min': max(extent['lon_min'] - margin, -180.0),
        'lon_max': min(extent['lon_max'] + margin, 180.0),
        'lat_min': max(extent['lat_min'] - margin, -90.0),
        'lat_max': min(extent['lat_max'] + margin, 90.0),
    }


def extent_bounds(extent: dict) -> list:
    """[lon_min, lon_max, lat_min, lat_max], the order GeoAxes.set_extent takes."""
    return [extent['lon_min'], extent['lon_max'], extent['lat_min'], extent['lat_max']]


def sites_in_extent(sites: pd.DataFrame, extent: dict) -> pd.DataFrame:
    """Rows of `sites` whose coordinates fall inside the extent (edges included)."""
    inside = (
        sites['long'].between(extent['lon_min'], extent['lon_max'])
        & sites['lat'].between(extent['lat_min'], extent['lat_max'])
    )
    return sites[inside]


def inset_rect(anchor) -> list:
    """Validate an inset anchor and return it as [x, y, width, height].

    `anchor` is a mapping with x, y, width, height keys or an
    (x, y, width, height) sequence. Values are fractions of the base figure,
    with (0, 0) at the bottom-left corner. Every value must lie in [0, 1]
    and the inset must have a non-zero width and height.
    """
    if not isinstance(anchor, Mapping):
        if isinstance(anchor, (str, bytes)) or not isinstance(anchor, Sequence) \
                or len(anchor) != len(INSET_KEYS):
            raise ValueError(f"Inset anchor must be a mapping or (x, y, width, height), got {anchor!r}")
        anchor = dict(zip(INSET_KEYS, anchor))

    missing = [k for k in INSET_KEYS if k not in anchor]
    if missing:
        raise ValueError(f"Inset anchor is missing {', '.join(missing)}")

    rect = []
    for key in INSET_KEYS:
        value = anchor[key]
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ValueError(f"Inset anchor '{key}' must be a number, got {value!r}")
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Inset anchor '{key}' must be within [0, 1], got {value}")
        rect.append(float(value))

    if rect[2] == 0 or rect[3] == 0:
        raise ValueError("Inset anchor width and height must be non-zero")
    return rect


def scale_bar_km(extent: dict, fraction: float = 0.25) -> float:
    """Largest 1/2/5 x 10^n km length that fits in `fraction` of the map width."""
    mid_lat = (extent['lat_min'] + extent['lat_max']) / 2
    km_per_deg_lon = KM_PER_DEG_LAT * np.cos(np.radians(mid_lat))
    target = (extent['lon_max'] - extent['lon_min']) * km_per_deg_lon * fraction
    if target <= 0:
        raise ValueError("Extent is too narrow for a scale bar")

    exponent = np.floor(np.log10(target))
    for step in (5, 2):
        if step * 10 ** exponent <= target:
            return float(step * 10 ** exponent)
    return float(10 ** exponent)
