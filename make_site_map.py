#!/usr/bin/env python3
"""
make_site_map.py - Field site temperature map with an overview inset

Creates a publication-style map with:
- Main panel: shapefile basemap framed to the field sites (padded extent),
  sites colored by temperature, labels, scale bar, north arrow, neatline
- Inset panel: zoomed-out overview with the main map extent outlined in red

Usage:
    uv run python make_site_map.py
"""

import numbers

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.patches import Rectangle
from datetime import date
from pathlib import Path
import cartopy.crs as ccrs
from cartopy.mpl.gridliner import LONGITUDE_FORMATTER, LATITUDE_FORMATTER
from pyproj import CRS
from pyproj.exceptions import CRSError

from basemap import BASEMAP_CRS, clip_basemap, load_basemap, set_basemap_crs
from map_extent import (KM_PER_DEG_LAT, MARGIN, compute_extent, extent_bounds,
                        inset_rect, pad_extent, scale_bar_km, sites_in_extent,
                        validate_margin)
from site_table import load_sites


# === Paths ===
DATA_DIR = Path(__file__).parent / "data"
BASEMAP_PATH = DATA_DIR / "basemap"
SITES_PATH = DATA_DIR / "sites.xlsx"
OUTPUT_DIR = Path(__file__).parent / "outputs" / "figures"
OUTPUT_FILE = OUTPUT_DIR / "site_map.png"

# === Extent ===
OVERVIEW_MARGIN = 1.0   # degrees around the site extent shown in the inset

# === Inset placement (fractions of the figure, origin bottom-left) ===
INSET_ANCHOR = {"x": 0.055, "y": 0.251, "width": 0.5, "height": 0.3}

# === Output size: 7.5 x 5.5 in at 600 DPI -> 4500 x 3300 px ===
FIGSIZE = (7.5, 5.5)
DPI = 600

# Main panel and colorbar positions (figure-fraction)
MAIN_AX_RECT = [0.06, 0.07, 0.78, 0.86]
COLORBAR_RECT = [0.87, 0.20, 0.02, 0.60]

# === Colors ===
TEMP_COLOR_LOW = "#132B43"
TEMP_COLOR_HIGH = "#56B1F7"
NO_DATA_COLOR = "#999999"
LAND_COLOR = "#F2EFE6"
WATER_COLOR = "#DCEBF5"
COAST_COLOR = "#555555"
EXTENT_COLOR = "red"

# === Font sizes ===
FS_TITLE = 10
FS_SITE_LABEL = 6
FS_GRIDLINE = 7
FS_COLORBAR = 8
FS_SCALE_BAR = 6
FS_NORTH_ARROW = 8
FS_DATE_STAMP = 5

MAP_TITLE = "Field Site Temperatures"


def positive_finite(value):
    """True for a finite, positive real number that is not a bool."""
    return (not isinstance(value, bool) and isinstance(value, numbers.Real)
            and bool(np.isfinite(value)) and value > 0)


def validate_config(margin=MARGIN, overview_margin=OVERVIEW_MARGIN,
                    inset_anchor=INSET_ANCHOR, figsize=FIGSIZE, dpi=DPI,
                    temp_color_low=TEMP_COLOR_LOW, temp_color_high=TEMP_COLOR_HIGH,
                    crs=BASEMAP_CRS):
    """Reject bad configuration before any input file is opened."""
    validate_margin(margin)
    validate_margin(overview_margin)
    inset_rect(inset_anchor)

    if len(figsize) != 2 or not all(positive_finite(v) for v in figsize):
        raise ValueError(f"Figure size must be two positive inch values, got {figsize!r}")
    if not positive_finite(dpi):
        raise ValueError(f"DPI must be a positive number, got {dpi!r}")

    for name, color in (("low", temp_color_low), ("high", temp_color_high)):
        if not mcolors.is_color_like(color):
            raise ValueError(f"Temperature {name} color is not a valid color: {color!r}")

    try:
        map_crs = CRS.from_user_input(crs)
    except CRSError as e:
        raise ValueError(f"Map CRS is not recognized: {crs!r}") from e
    if not map_crs.is_geographic:
        raise ValueError(f"Map CRS must be geographic (lon/lat), got {crs}")


def temperature_cmap(low=TEMP_COLOR_LOW, high=TEMP_COLOR_HIGH):
    """Two-color gradient from `low` to `high`."""
    return LinearSegmentedColormap.from_list("site_temperature", [low, high])


def temperature_norm(temps):
    """Color normalization over the observed temperatures."""
    temps = temps.dropna()
    if temps.empty:
        return plt.Normalize(vmin=0, vmax=1)
    t_min, t_max = float(temps.min()), float(temps.max())
    if t_min == t_max:
        t_min, t_max = t_min - 0.5, t_max + 0.5
    return plt.Normalize(vmin=t_min, vmax=t_max)


# ─── Map furniture ────────────────────────────────────────────────────────────

def draw_neatline(ax, n_segments=12, linewidth=3):
    """Draw an alternating black/white ladder border (neatline) around the axes."""
    x0, x1 = ax.get_xlim()
    y0, y1 = ax.get_ylim()
    edges = [
        ((x0, y0), (x1, y0)),   # bottom
        ((x0, y1), (x1, y1)),   # top
        ((x0, y0), (x0, y1)),   # left
        ((x1, y0), (x1, y1)),   # right
    ]

    for (xa, ya), (xb, yb) in edges:
        ax.plot([xa, xb], [ya, yb], color='black', linewidth=linewidth + 1.5,
                transform=ax.transData, clip_on=False, zorder=19,
                solid_capstyle='butt')
        xs = np.linspace(xa, xb, n_segments + 1)
        ys = np.linspace(ya, yb, n_segments + 1)
        for i in range(n_segments):
            ax.plot(xs[i:i + 2], ys[i:i + 2],
                    color='black' if i % 2 == 0 else 'white',
                    linewidth=linewidth, transform=ax.transData,
                    clip_on=False, zorder=20, solid_capstyle='butt')


def add_date_stamp(ax, crs_label="WGS84"):
    """Add a date/projection stamp at the bottom-right of a map panel."""
    stamp = f"Map updated: {date.today().strftime('%Y-%m-%d')}, {crs_label}"
    ax.text(0.98, 0.02, stamp, ha='right', va='bottom',
            fontsize=FS_DATE_STAMP, transform=ax.transAxes, zorder=15,
            bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.9))


def add_north_arrow(ax):
    """North arrow in the upper-right corner (lon/lat axes, so north is up)."""
    ax.annotate('N', xy=(0.95, 0.95), xytext=(0.95, 0.84),
                xycoords='axes fraction', textcoords='axes fraction',
                fontsize=FS_NORTH_ARROW, fontweight='bold', ha='center', va='bottom',
                arrowprops=dict(arrowstyle='->', color='black', lw=1.5),
                zorder=15,
                bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.9))


def add_scale_bar(ax, extent, data_crs, n_segments=4):
    """Alternating black/white scale bar near the lower-right corner."""
    length_km = scale_bar_km(extent)
    mid_lat = (extent['lat_min'] + extent['lat_max']) / 2
    length_deg = length_km / (KM_PER_DEG_LAT * np.cos(np.radians(mid_lat)))

    vis_w = extent['lon_max'] - extent['lon_min']
    vis_h = extent['lat_max'] - extent['lat_min']
    bar_x1 = extent['lon_max'] - vis_w * 0.04
    bar_x0 = bar_x1 - length_deg
    bar_y = extent['lat_min'] + vis_h * 0.12

    ax.plot([bar_x0, bar_x1], [bar_y, bar_y], color='black', linewidth=5.5,
            solid_capstyle='butt', transform=data_crs, zorder=14)
    seg = length_deg / n_segments
    for i in range(n_segments):
        ax.plot([bar_x0 + i * seg, bar_x0 + (i + 1) * seg], [bar_y, bar_y],
                color='black' if i % 2 == 0 else 'white', linewidth=4,
                solid_capstyle='butt', transform=data_crs, zorder=15)

    for x, text in ((bar_x0, '0'), (bar_x1, f'{length_km:g} km')):
        ax.text(x, bar_y + vis_h * 0.02, text, ha='center', va='bottom',
                fontsize=FS_SCALE_BAR, fontweight='bold', transform=data_crs,
                zorder=15)
    return length_km


def plot_basemap(ax, basemap, data_crs, linewidth=0.6):
    """Land polygons over a water-colored background; line features unfilled."""
    ax.set_facecolor(WATER_COLOR)
    if basemap.empty:
        return
    is_line = basemap.geom_type.isin(['LineString', 'MultiLineString', 'LinearRing'])
    polygons = basemap.geometry[~is_line]
    lines = basemap.geometry[is_line]
    if not polygons.empty:
        ax.add_geometries(polygons, crs=data_crs, facecolor=LAND_COLOR,
                          edgecolor=COAST_COLOR, linewidth=linewidth, zorder=1)
    if not lines.empty:
        ax.add_geometries(lines, crs=data_crs, facecolor='none',
                          edgecolor=COAST_COLOR, linewidth=linewidth, zorder=2)


# ─── Panels ───────────────────────────────────────────────────────────────────

def render_site_map(fig, ax, basemap, sites, extent, cmap, norm, cax=None,
                    title=MAP_TITLE):
    """Render the main panel: basemap and sites framed to `extent`."""
    print("Main panel: rendering sites...")
    data_crs = ccrs.PlateCarree()
    ax.set_extent(extent_bounds(extent), crs=data_crs)

    plot_basemap(ax, clip_basemap(basemap, extent), data_crs)

    shown = sites_in_extent(sites, extent)
    has_temp = shown['temp'].notna()
    if (~has_temp).any():
        ax.scatter(shown.loc[~has_temp, 'long'], shown.loc[~has_temp, 'lat'],
                   s=36, color=NO_DATA_COLOR, edgecolors='black',
                   linewidths=0.8, transform=data_crs, zorder=10)
    if has_temp.any():
        ax.scatter(shown.loc[has_temp, 'long'], shown.loc[has_temp, 'lat'],
                   c=shown.loc[has_temp, 'temp'], cmap=cmap, norm=norm,
                   s=36, edgecolors='black', linewidths=0.8,
                   transform=data_crs, zorder=10)
    print(f"  Plotted {len(shown)} sites ({int((~has_temp).sum())} without temperature)")

    for row in shown.itertuples(index=False):
        ax.annotate(str(row.site), (row.long, row.lat),
                    xycoords=data_crs._as_mpl_transform(ax),
                    xytext=(5, 5), textcoords='offset points',
                    fontsize=FS_SITE_LABEL, fontweight='bold',
                    bbox=dict(boxstyle='round,pad=0.15', facecolor='white',
                              alpha=0.85, edgecolor='gray', linewidth=0.4),
                    zorder=11)

    gl = ax.gridlines(crs=data_crs, draw_labels=True,
                      linewidth=0.4, color='gray', alpha=0.5, linestyle='--')
    gl.top_labels = False
    gl.right_labels = False
    gl.xformatter = LONGITUDE_FORMATTER
    gl.yformatter = LATITUDE_FORMATTER
    gl.xlabel_style = {'size': FS_GRIDLINE, 'rotation': 0}
    gl.ylabel_style = {'size': FS_GRIDLINE}

    add_north_arrow(ax)
    add_scale_bar(ax, extent, data_crs)
    add_date_stamp(ax)
    draw_neatline(ax)

    if title:
        ax.set_title(title, fontsize=FS_TITLE, fontweight='bold')

    if cax is not None:
        sm = plt.cm.ScalarMappable(cmap=cmap, norm=norm)
        sm.set_array([])
        cbar = fig.colorbar(sm, cax=cax)
        cbar.set_label('Temperature (°C)', fontsize=FS_COLORBAR)
        cbar.ax.tick_params(labelsize=FS_GRIDLINE)


def render_overview(ax, basemap, sites, extent, overview_extent):
    """Render the overview panel with the main extent outlined."""
    print("Overview panel: rendering context...")
    data_crs = ccrs.PlateCarree()
    ax.set_extent(extent_bounds(overview_extent), crs=data_crs)

    plot_basemap(ax, clip_basemap(basemap, overview_extent), data_crs, linewidth=0.3)
    ax.scatter(sites['long'], sites['lat'], s=4, color='black',
               transform=data_crs, zorder=10)

    rect = Rectangle(
        (extent['lon_min'], extent['lat_min']),
        extent['lon_max'] - extent['lon_min'],
        extent['lat_max'] - extent['lat_min'],
        linewidth=1.2, edgecolor=EXTENT_COLOR, facecolor='none',
        transform=data_crs, zorder=15
    )
    ax.add_patch(rect)

    for spine in ax.spines.values():
        spine.set_edgecolor('black')
        spine.set_linewidth(1.0)


def add_inset(fig, anchor=INSET_ANCHOR):
    """Add the overview axes on top of the figure at the anchor fractions."""
    ax_inset = fig.add_axes(inset_rect(anchor), projection=ccrs.PlateCarree())
    ax_inset.set_zorder(10)
    return ax_inset


def export_figure(fig, output_file, dpi=DPI):
    """Write the figure as a PNG of exactly figsize x dpi pixels."""
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    print(f"\nSaving to {output_file}...")
    fig.savefig(output_file, dpi=dpi, format='png', facecolor='white')
    print(f"Saved: {output_file}")
    return output_file


# ─── Pipeline ─────────────────────────────────────────────────────────────────

def make_site_map(basemap_path=BASEMAP_PATH, sites_path=SITES_PATH,
                  output_file=OUTPUT_FILE, margin=MARGIN,
                  overview_margin=OVERVIEW_MARGIN, inset_anchor=INSET_ANCHOR,
                  temp_color_low=TEMP_COLOR_LOW, temp_color_high=TEMP_COLOR_HIGH,
                  figsize=FIGSIZE, dpi=DPI, crs=BASEMAP_CRS, layer=None,
                  sheet_name=0, title=MAP_TITLE):
    """Load the inputs, render the main map and inset, and write the PNG."""
    validate_config(margin=margin, overview_margin=overview_margin,
                    inset_anchor=inset_anchor, figsize=figsize, dpi=dpi,
                    temp_color_low=temp_color_low,
                    temp_color_high=temp_color_high, crs=crs)

    basemap = set_basemap_crs(load_basemap(basemap_path, layer=layer), crs)
    sites = load_sites(sites_path, sheet_name=sheet_name)

    extent = compute_extent(sites, margin=margin)
    overview_extent = pad_extent(extent, overview_margin)
    print(f"Map extent: {extent['lon_min']:.4f} to {extent['lon_max']:.4f}°E, "
          f"{extent['lat_min']:.4f} to {extent['lat_max']:.4f}°N")

    cmap = temperature_cmap(temp_color_low, temp_color_high)
    norm = temperature_norm(sites['temp'])

    fig = plt.figure(figsize=figsize)
    try:
        ax = fig.add_axes(MAIN_AX_RECT, projection=ccrs.PlateCarree())
        cax = fig.add_axes(COLORBAR_RECT)
        render_site_map(fig, ax, basemap, sites, extent, cmap, norm,
                        cax=cax, title=title)

        ax_inset = add_inset(fig, inset_anchor)
        render_overview(ax_inset, basemap, sites, extent, overview_extent)

        return export_figure(fig, output_file, dpi=dpi)
    finally:
        plt.close(fig)


def main():
    print("=" * 60)
    print("Field Site Map")
    print("=" * 60)

    make_site_map()

    print("\nDone!")


if __name__ == "__main__":
    main()
