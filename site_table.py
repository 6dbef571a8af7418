"""
site_table.py - Field site spreadsheet loader

Reads the site table (one row per field site) and normalizes it to the
columns the map scripts expect: site, lat, long, temp. Extra columns are
carried through untouched.
"""

import pandas as pd
from pathlib import Path


REQUIRED_COLUMNS = ('site', 'lat', 'long', 'temp')

# Header spellings seen in field sheets -> normalized column name
COLUMN_ALIASES = {
    'site_id': 'site',
    'id': 'site',
    'name': 'site',
    'latitude': 'lat',
    'longitude': 'long',
    'lon': 'long',
    'lng': 'long',
    'temperature': 'temp',
    'temp_c': 'temp',
}

EXCEL_SUFFIXES = {'.xlsx', '.xlsm'}


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Strip and lower-case headers, then map known aliases."""
    renamed = {}
    for col in df.columns:
        key = str(col).strip().lower()
        renamed[col] = COLUMN_ALIASES.get(key, key)
    out = df.rename(columns=renamed)

    duplicated = out.columns[out.columns.duplicated()].unique().tolist()
    if duplicated:
        raise ValueError(f"Site table has more than one column for: {', '.join(duplicated)}")
    return out


def read_table(path: Path, sheet_name=0) -> pd.DataFrame:
    """Read a spreadsheet or CSV into a raw DataFrame."""
    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        with pd.ExcelFile(path) as xls:
            return pd.read_excel(xls, sheet_name=sheet_name)
    if suffix == '.csv':
        return pd.read_csv(path, encoding='utf-8-sig')
    raise ValueError(f"Unsupported site table format: {path.suffix or path.name}")


def load_sites(path, sheet_name=0) -> pd.DataFrame:
    """
    Load and validate the field site table.

    Parameters
    ----------
    path : str or Path
        Spreadsheet (.xlsx, .xlsm) or CSV file
    sheet_name : str or int
        Worksheet to read from a workbook (default: first sheet)

    Returns
    -------
    pd.DataFrame
        One row per site with numeric lat/long/temp columns

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If required columns are missing, the table is empty, or the
        coordinates are missing, non-numeric or out of range
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Site table not found: {path}")

    print(f"Loading sites from {path.name}...")
    df = normalize_columns(read_table(path, sheet_name=sheet_name))

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Site table {path.name} is missing columns: {', '.join(missing)}")

    df = df.dropna(how='all').copy()
    if df.empty:
        raise ValueError(f"Site table {path.name} has no site records")

    for col in ('lat', 'long'):
        values = pd.to_numeric(df[col], errors='coerce')
        bad = values.isna()
        if bad.any():
            rows = ', '.join(str(s) for s in df.loc[bad, 'site'].tolist())
            raise ValueError(f"Missing or non-numeric '{col}' for site(s): {rows}")
        df[col] = values

    if not df['lat'].between(-90, 90).all():
        raise ValueError("Latitude values must be within [-90, 90]")
    if not df['long'].between(-180, 180).all():
        raise ValueError("Longitude values must be within [-180, 180]")

    # Blank temperatures are allowed and drawn without a color
    temps = pd.to_numeric(df['temp'], errors='coerce')
    blank = df['temp'].isna() | df['temp'].astype(str).str.strip().eq('')
    bad = temps.isna() & ~blank
    if bad.any():
        rows = ', '.join(str(s) for s in df.loc[bad, 'site'].tolist())
        raise ValueError(f"Non-numeric 'temp' for site(s): {rows}")
    df['temp'] = temps

    df = df.reset_index(drop=True)
    print(f"  Sites: {len(df)}")
    print(f"  Lat: {df['lat'].min():.4f} to {df['lat'].max():.4f}°N, "
          f"long: {df['long'].min():.4f} to {df['long'].max():.4f}°E")
    if df['temp'].notna().any():
        print(f"  Temperature: {df['temp'].min():.1f} to {df['temp'].max():.1f}°C")
    return df
