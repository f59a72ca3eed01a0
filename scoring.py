"""
CEBM Scorecard - Scoring Engine

Turns named sheets of spreadsheet rows into ranked school records.

Pipeline:
- Record normalization: identity from the School Register, KPI sets from
  the four pillar input sheets (AE, SD, TL, CS)
- Pillar aggregation: mean of each KPI set, overall = mean of the pillars
- Status classification: fixed bands on the overall score
- Roster building: stable sort by overall score (descending) + system stats
- Incremental merge: upsert a new batch by School ID and re-sort

Everything here is a pure function of its inputs. Malformed cells degrade
to 0 / empty instead of raising; only a missing register or an empty
roster is escalated.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Any, Optional, Mapping, Sequence, Tuple
from dataclasses import dataclass, field

from config import (
    PILLAR_KEYS, PILLAR_SHEETS, REGISTER_SHEET_ALIASES,
    KPI_ID_ALIASES, REGISTER_ID_ALIASES, NAME_ALIASES,
    DISTRICT_ALIASES, TYPE_ALIASES,
    STATUS_BANDS, FALLBACK_STATUS, STATUS_LABELS,
)


RawRow = Mapping[str, Any]
KpiSet = Dict[str, float]


# ==================== ERRORS ====================

class ScorecardError(Exception):
    """Base class for scorecard errors."""


class EmptyResult(ScorecardError):
    """The School Register is absent or has no rows."""


class EmptyRosterError(ScorecardError):
    """A statistic needing division was requested on an empty roster."""


class NotFoundError(ScorecardError):
    """A school ID is not present in the roster."""


# ==================== DATA MODEL ====================

@dataclass(frozen=True)
class SchoolRecord:
    """
    One scored school.

    Frozen at the attribute level only: pillar_scores and kpi_detail are
    plain dicts built fresh for each record, and callers must treat them
    as read-only. A re-upload replaces the whole record.
    """
    id: str
    name: str
    district: str
    type: str
    pillar_scores: Dict[str, float] = field(default_factory=dict)  # pillar -> KPI average
    kpi_detail: Dict[str, KpiSet] = field(default_factory=dict)     # pillar -> {kpi: score}
    overall_score: float = 0.0
    status: str = FALLBACK_STATUS


class SystemStats:
    """
    Roster-wide summary statistics.

    Always derived from a roster, never edited. ``count`` and
    ``status_counts`` are available for an empty roster; the averages
    raise EmptyRosterError instead of dividing by zero.
    """

    def __init__(self, roster: Sequence[SchoolRecord]):
        self.count = len(roster)
        self.status_counts = {label: 0 for label in STATUS_LABELS}
        for record in roster:
            self.status_counts[record.status] = self.status_counts.get(record.status, 0) + 1

        self._average_overall = None
        self._pillar_averages = None
        if self.count:
            frame = pd.DataFrame({
                key: [record.pillar_scores.get(key, 0.0) for record in roster]
                for key in PILLAR_KEYS
            })
            self._pillar_averages = {key: float(frame[key].mean()) for key in PILLAR_KEYS}
            self._average_overall = float(np.mean([record.overall_score for record in roster]))

    def _require_rows(self):
        if not self.count:
            raise EmptyRosterError("Roster is empty; no averages can be computed")

    @property
    def average_overall(self) -> float:
        self._require_rows()
        return self._average_overall

    @property
    def pillar_averages(self) -> Dict[str, float]:
        self._require_rows()
        return dict(self._pillar_averages)

    def status_shares(self) -> Dict[str, float]:
        """Fraction of the roster (0-1) in each status band."""
        self._require_rows()
        return {label: n / self.count for label, n in self.status_counts.items()}

    def __repr__(self):
        return f"SystemStats(count={self.count}, status_counts={self.status_counts})"


# ==================== CELL HELPERS ====================

def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """
    Render a cell as a clean string.

    Integral numbers lose their decimal part so that a School ID typed as
    1, 1.0 or "1" always becomes "1".
    """
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        number = float(value)
        return str(int(number)) if number.is_integer() else str(number)
    return str(value).strip()


def resolve_alias(row: RawRow, aliases: Sequence[str], default: Any = None) -> Any:
    """Return the first non-blank value among ``aliases`` in ``row``."""
    for alias in aliases:
        if alias in row and not is_blank(row[alias]):
            return row[alias]
    return default


def coerce_score(value: Any) -> float:
    """Parse a KPI cell as a number; anything unparseable scores 0."""
    try:
        score = float(value)
    except (ValueError, TypeError, OverflowError):
        return 0.0
    if np.isnan(score):
        return 0.0
    return score


def average(kpi_set: Mapping[str, float]) -> float:
    """Arithmetic mean of a KPI set, or 0 when it is empty."""
    if not kpi_set:
        return 0.0
    return sum(kpi_set.values()) / len(kpi_set)


# ==================== NORMALIZER ====================

def build_kpi_map(rows: Sequence[RawRow]) -> Dict[str, KpiSet]:
    """
    Group a pillar input sheet by School ID.

    Every column except the ID columns is a KPI. Rows without an ID are
    dropped; when an ID repeats, the later row wins.

    Returns:
        Dict mapping school_id -> {kpi_name: score}
    """
    id_columns = set(KPI_ID_ALIASES)
    kpi_map = {}
    for row in rows:
        raw_id = resolve_alias(row, KPI_ID_ALIASES)
        if raw_id is None:
            continue
        kpi_names = [name for name in row.keys() if name not in id_columns]
        kpi_map[cell_text(raw_id)] = {name: coerce_score(row[name]) for name in kpi_names}
    return kpi_map


def classify(overall_score: float) -> str:
    """Map an overall score to its status band (no clamping)."""
    for lower_bound, label in STATUS_BANDS:
        if overall_score >= lower_bound:
            return label
    return FALLBACK_STATUS


def build_school_record(school_id: str,
                        name: str,
                        district: str = "",
                        school_type: str = "",
                        kpi_detail: Optional[Mapping[str, KpiSet]] = None) -> SchoolRecord:
    """
    Aggregate KPI sets into pillar scores, overall score and status.

    Pillars missing from ``kpi_detail`` get an empty KPI set (score 0).
    """
    kpi_detail = kpi_detail or {}
    detail = {key: dict(kpi_detail.get(key, {})) for key in PILLAR_KEYS}
    pillar_scores = {key: average(detail[key]) for key in PILLAR_KEYS}
    overall = sum(pillar_scores.values()) / len(PILLAR_KEYS)

    return SchoolRecord(
        id=school_id,
        name=name,
        district=district,
        type=school_type,
        pillar_scores=pillar_scores,
        kpi_detail=detail,
        overall_score=overall,
        status=classify(overall),
    )


def find_register(sheets: Mapping[str, Sequence[RawRow]]) -> List[RawRow]:
    """Return the register rows under any accepted sheet name (empty if absent)."""
    for sheet_name in REGISTER_SHEET_ALIASES:
        if sheet_name in sheets:
            return list(sheets[sheet_name] or [])
    return []


def normalize(sheets: Mapping[str, Sequence[RawRow]]) -> List[SchoolRecord]:
    """
    Build one SchoolRecord per School Register row.

    Pillar sheets that are missing count as empty. Schools that appear only
    in pillar sheets are ignored; the register decides membership.

    Returns:
        Unsorted list of SchoolRecord, in register order

    Raises:
        EmptyResult: if the register is missing or has no rows
    """
    register = find_register(sheets)
    if not register:
        raise EmptyResult("No school data found. Ensure the workbook has a 'School Register' sheet.")

    kpi_maps = {key: build_kpi_map(sheets.get(sheet_name) or [])
                for key, sheet_name in PILLAR_SHEETS.items()}

    records = []
    for position, row in enumerate(register, start=1):
        raw_id = resolve_alias(row, REGISTER_ID_ALIASES)
        if raw_id is None:
            first_value = next(iter(row.values()), None)
            raw_id = position if is_blank(first_value) else first_value
        school_id = cell_text(raw_id)

        name = resolve_alias(row, NAME_ALIASES)
        district = resolve_alias(row, DISTRICT_ALIASES, "")
        school_type = resolve_alias(row, TYPE_ALIASES, "")

        records.append(build_school_record(
            school_id=school_id,
            name=cell_text(name) if name is not None else f"School {school_id}",
            district=cell_text(district),
            school_type=cell_text(school_type),
            kpi_detail={key: kpi_maps[key].get(school_id, {}) for key in PILLAR_KEYS},
        ))

    return records


# ==================== ROSTER ====================

def sort_roster(records: Sequence[SchoolRecord]) -> List[SchoolRecord]:
    """Stable sort by overall score, highest first; ties keep input order."""
    return sorted(records, key=lambda record: record.overall_score, reverse=True)


def build_roster(records: Sequence[SchoolRecord]) -> Tuple[List[SchoolRecord], SystemStats]:
    """Rank the records and compute system-wide statistics."""
    roster = sort_roster(records)
    return roster, SystemStats(roster)


def merge(existing: Sequence[SchoolRecord],
          incoming: Sequence[SchoolRecord]) -> List[SchoolRecord]:
    """
    Upsert a newly normalized batch into an existing roster.

    A record whose ID is already present replaces the old record whole;
    anything else is appended. The result is re-sorted.
    """
    merged = list(existing)
    positions = {}
    for i, record in enumerate(merged):
        positions.setdefault(record.id, i)

    for record in incoming:
        if record.id in positions:
            merged[positions[record.id]] = record
        else:
            positions[record.id] = len(merged)
            merged.append(record)

    return sort_roster(merged)
