"""
CEBM Scorecard Data Loader

Loads the CEBM workbook (or equivalent CSVs / a remote tabular provider)
into named sheets of rows and turns them into a ranked school roster.

Expected sheets:
- School Register: School ID, School Name, District, Type (aliases accepted)
- AE Input / SD Input / TL Input / CS Input: School ID + one column per KPI

Every source is reduced to the same shape before scoring:
    {sheet_name: [ {column: value, ...}, ... ]}
Blank cells are left out of a row entirely, so a blank KPI cell is absent
rather than scored as 0.
"""

import sys
import pandas as pd
from pathlib import Path
from typing import Dict, List, Any, Callable, Iterable, Optional, Sequence, Tuple, Union

from config import REGISTER_SHEET, REGISTER_SHEET_ALIASES, PILLAR_SHEETS, PILLARS, STATUS_LABELS
from scoring import SchoolRecord, SystemStats, is_blank, normalize, build_roster


WORKBOOK_EXTENSIONS = {'.xlsx', '.xlsm'}
ALL_SHEETS = [REGISTER_SHEET] + list(PILLAR_SHEETS.values())

Sheets = Dict[str, List[Dict[str, Any]]]


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Convert a sheet DataFrame to a list of row dicts.

    Column names are stripped; blank cells are dropped from each row and
    rows with no values at all are skipped.
    """
    df = df.copy()
    df.columns = [str(col).strip() for col in df.columns]

    rows = []
    for record in df.to_dict(orient='records'):
        row = {col: value for col, value in record.items() if not is_blank(value)}
        if row:
            rows.append(row)
    return rows


def read_workbook(file_path: Union[str, Path]) -> Sheets:
    """
    Read every sheet of an Excel workbook.

    Returns:
        Dict mapping sheet_name -> list of row dicts
    """
    frames = pd.read_excel(file_path, sheet_name=None)
    return {str(name).strip(): frame_to_rows(df) for name, df in frames.items()}


def read_csv_sheet(file_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read one CSV file as a sheet of rows."""
    df = pd.read_csv(file_path, encoding='utf-8')
    return frame_to_rows(df)


def read_csv_sheets(paths: Iterable[Union[str, Path]]) -> Sheets:
    """
    Read CSV files named after their sheets (e.g. "AE Input.csv").

    Returns:
        Dict mapping sheet_name (file stem) -> list of row dicts
    """
    sheets = {}
    for path in paths:
        path = Path(path)
        try:
            rows = read_csv_sheet(path)
            sheets[path.stem.strip()] = rows
            print(f"  Loaded: {path.name} ({len(rows)} rows)")
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            print(f"  Warning: Failed to parse {path.name}: {e}")
    return sheets


def load_sheets(source: Union[str, Path]) -> Sheets:
    """
    Load named sheets from a workbook, a single CSV, or a directory of CSVs.

    Raises:
        FileNotFoundError: if the source does not exist, or a directory
            contains no CSV files
        ValueError: for unsupported file types
    """
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Data source not found: {source}")

    if path.is_dir():
        csv_files = sorted(path.glob("*.csv"))
        if not csv_files:
            raise FileNotFoundError(f"No CSV files found in {source}")
        return read_csv_sheets(csv_files)

    suffix = path.suffix.lower()
    if suffix in WORKBOOK_EXTENSIONS:
        sheets = read_workbook(path)
        for name, rows in sheets.items():
            print(f"  Loaded: {path.name} [{name}] ({len(rows)} rows)")
        return sheets
    if suffix == '.csv':
        return read_csv_sheets([path])

    raise ValueError(f"Unsupported file type '{path.suffix}'. Use .xlsx, .xlsm or .csv")


def fetch_sheets(provider: Callable[[str], Any],
                 sheet_names: Optional[Sequence[str]] = None) -> Sheets:
    """
    Pull sheets from a remote tabular provider, one call per sheet.

    ``provider(sheet_name)`` may return a DataFrame or a sequence of row
    dicts. A failure on the School Register is re-raised since nothing can
    be scored without it; a failing pillar sheet is reported and left empty.
    """
    sheet_names = list(sheet_names or ALL_SHEETS)
    sheets = {}
    for name in sheet_names:
        try:
            result = provider(name)
        except Exception as e:
            if name in REGISTER_SHEET_ALIASES:
                raise
            print(f"  Warning: Failed to fetch {name}: {e}")
            sheets[name] = []
            continue

        if isinstance(result, pd.DataFrame):
            sheets[name] = frame_to_rows(result)
        else:
            sheets[name] = [
                {str(col).strip(): value for col, value in row.items() if not is_blank(value)}
                for row in (result or [])
            ]
        print(f"  Loaded: {name} ({len(sheets[name])} rows)")
    return sheets


def build_scorecard_data(source: Union[str, Path]) -> Tuple[List[SchoolRecord], SystemStats]:
    """
    Build the ranked roster and system statistics from a data source.

    Raises:
        EmptyResult: if the source has no School Register rows
    """
    print("Loading sheets...")
    sheets = load_sheets(source)

    missing = [name for name in PILLAR_SHEETS.values() if name not in sheets]
    for name in missing:
        print(f"  Warning: Sheet '{name}' not found, its pillar will score 0")

    print("\nScoring schools...")
    records = normalize(sheets)
    roster, stats = build_roster(records)
    print(f"  Scored {stats.count} schools")

    return roster, stats


def print_summary(roster: Sequence[SchoolRecord], stats: SystemStats) -> None:
    """Print a plain-text summary of the scored roster."""
    print("\n" + "=" * 60)
    print("Scorecard Summary")
    print("=" * 60)
    print(f"  Schools: {stats.count}")
    print(f"  Overall Average: {stats.average_overall:.1f}")
    for key, average in stats.pillar_averages.items():
        print(f"  {PILLARS[key]}: {average:.1f}")
    print("  Status:")
    for label in STATUS_LABELS:
        print(f"    {label}: {stats.status_counts[label]}")

    print("\n  Top schools:")
    for rank, record in enumerate(roster[:5], start=1):
        print(f"    {rank}. {record.name} ({record.district or 'N/A'}) - {record.overall_score:.1f}")


if __name__ == "__main__":
    print("=" * 60)
    print("CEBM Scorecard Data Loader")
    print("=" * 60)

    source = sys.argv[1] if len(sys.argv) > 1 else "CEBM_BSC_100_Schools.xlsx"
    roster, stats = build_scorecard_data(source)
    print_summary(roster, stats)
