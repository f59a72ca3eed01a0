"""
CEBM Scorecard - Comparative Analysis

Relative standing of one school against the ranked roster:
rank and percentile, pillar-by-pillar comparison with the system average,
strengths / weaknesses, district peers, and KPI-level variance.

Also provides roster slices (top / bottom schools) and DataFrame views
used by reporting layers.
"""

import pandas as pd
import numpy as np
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass, field

from config import PILLARS, PILLAR_KEYS, TOP_N
from scoring import SchoolRecord, SystemStats, NotFoundError


@dataclass(frozen=True)
class PillarComparison:
    """One pillar of a school against the whole roster."""
    pillar: str
    name: str
    score: float
    system_average: float
    variance: float   # score - system_average
    rank: int         # schools scoring strictly higher + 1
    minimum: float
    maximum: float


@dataclass(frozen=True)
class DistrictComparison:
    """A school against the other schools in its district."""
    district: str
    average: Optional[float]   # Mean overall of peers; None when alone
    rank: int
    total: int                 # Peers + the school itself


@dataclass(frozen=True)
class KpiComparison:
    """A single KPI against its roster-wide mean."""
    pillar: str
    kpi: str
    score: float
    system_average: float
    variance: float


@dataclass(frozen=True)
class AnalysisRecord:
    """Complete comparative view of one school."""
    school: SchoolRecord
    rank: int
    total: int
    percentile: float
    pillars: List[PillarComparison] = field(default_factory=list)
    strengths: List[PillarComparison] = field(default_factory=list)
    weaknesses: List[PillarComparison] = field(default_factory=list)
    district: Optional[DistrictComparison] = None
    kpis: List[KpiComparison] = field(default_factory=list)


# ==================== LOOKUPS ====================

def rank_of(roster: Sequence[SchoolRecord], school_id: str) -> int:
    """1-based position of a school in the (already sorted) roster."""
    for position, record in enumerate(roster, start=1):
        if record.id == school_id:
            return position
    raise NotFoundError(f"School {school_id!r} is not in the roster")


def find_school(roster: Sequence[SchoolRecord], school_id: str) -> SchoolRecord:
    """Get the roster record for a school ID."""
    return roster[rank_of(roster, school_id) - 1]


def top_schools(roster: Sequence[SchoolRecord], n: int = TOP_N) -> List[SchoolRecord]:
    """Best ``n`` schools, best first."""
    if n <= 0:
        return []
    return list(roster[:n])


def bottom_schools(roster: Sequence[SchoolRecord], n: int = TOP_N) -> List[SchoolRecord]:
    """Weakest ``n`` schools, weakest first."""
    if n <= 0:
        return []
    return list(reversed(roster[-n:]))


# ==================== ANALYSIS ====================

def percentile_of(rank: int, total: int) -> float:
    """Share of the roster ranked below ``rank``, 0-100, rounded half up to one decimal."""
    exact = Decimal(100 * (total - rank)) / Decimal(total)
    return float(exact.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))



def compare_pillars(school: SchoolRecord,
                    roster: Sequence[SchoolRecord],
                    pillar_averages: Dict[str, float]) -> List[PillarComparison]:
    """Compare each pillar score with the roster's average, rank and range."""
    comparisons = []
    for key in PILLAR_KEYS:
        scores = np.array([record.pillar_scores.get(key, 0.0) for record in roster])
        score = school.pillar_scores.get(key, 0.0)
        comparisons.append(PillarComparison(
            pillar=key,
            name=PILLARS[key],
            score=score,
            system_average=pillar_averages[key],
            variance=score - pillar_averages[key],
            rank=int((scores > score).sum()) + 1,
            minimum=float(scores.min()),
            maximum=float(scores.max()),
        ))
    return comparisons


def compare_district(school: SchoolRecord,
                     roster: Sequence[SchoolRecord]) -> DistrictComparison:
    """
    Rank a school among the roster members sharing its district.

    Peers are re-sorted together with the school; on equal overall scores
    the peers stay ahead of it.
    """
    peers = [record for record in roster
             if record.district == school.district and record.id != school.id]
    if not peers:
        return DistrictComparison(district=school.district, average=None, rank=1, total=1)

    ranked = sorted(peers + [school], key=lambda record: record.overall_score, reverse=True)
    rank = next(i for i, record in enumerate(ranked, start=1) if record is school)

    return DistrictComparison(
        district=school.district,
        average=float(np.mean([record.overall_score for record in peers])),
        rank=rank,
        total=len(peers) + 1,
    )


def compare_kpis(school: SchoolRecord,
                 roster: Sequence[SchoolRecord]) -> List[KpiComparison]:
    """
    Compare every KPI the school reports with its mean across the roster.

    Schools without the KPI count as 0 in the mean.
    """
    total = len(roster)
    comparisons = []
    for key in PILLAR_KEYS:
        for kpi, score in school.kpi_detail.get(key, {}).items():
            values = [record.kpi_detail.get(key, {}).get(kpi, 0.0) for record in roster]
            system_average = sum(values) / total
            comparisons.append(KpiComparison(
                pillar=key,
                kpi=kpi,
                score=score,
                system_average=system_average,
                variance=score - system_average,
            ))
    return comparisons


def analyze(school: SchoolRecord,
            roster: Sequence[SchoolRecord],
            stats: SystemStats) -> AnalysisRecord:
    """
    Build the full comparative analysis for one school.

    Args:
        school: The school to analyze; must be in ``roster`` (by ID)
        roster: Ranked roster, highest overall score first
        stats: SystemStats of the same roster

    Raises:
        NotFoundError: if the school is not in the roster
    """
    rank = rank_of(roster, school.id)
    total = len(roster)
    percentile = percentile_of(rank, total)

    pillars = compare_pillars(school, roster, stats.pillar_averages)

    strengths = sorted([p for p in pillars if p.variance > 0], key=lambda p: p.score, reverse=True)
    # Exactly at the system average counts as a weakness
    weaknesses = sorted([p for p in pillars if p.variance <= 0], key=lambda p: p.score, reverse=True)

    return AnalysisRecord(
        school=school,
        rank=rank,
        total=total,
        percentile=percentile,
        pillars=pillars,
        strengths=strengths,
        weaknesses=weaknesses,
        district=compare_district(school, roster),
        kpis=compare_kpis(school, roster),
    )


# ==================== REPORT FRAMES ====================

def rankings_frame(roster: Sequence[SchoolRecord]) -> pd.DataFrame:
    """Full rankings table, one row per school in roster order."""
    columns = ['Rank', 'School ID', 'School', 'District', 'Type'] + PILLAR_KEYS + ['Overall', 'Status']
    rows = []
    for rank, record in enumerate(roster, start=1):
        row = {
            'Rank': rank,
            'School ID': record.id,
            'School': record.name,
            'District': record.district,
            'Type': record.type,
        }
        for key in PILLAR_KEYS:
            row[key] = record.pillar_scores.get(key, 0.0)
        row['Overall'] = record.overall_score
        row['Status'] = record.status
        rows.append(row)

    return pd.DataFrame(rows, columns=columns)


def kpi_breakdown_frame(analysis: AnalysisRecord, pillar: Optional[str] = None) -> pd.DataFrame:
    """KPI-level comparison table, optionally limited to one pillar."""
    if pillar is not None and pillar not in PILLARS:
        raise ValueError(f"Unknown pillar: {pillar}")

    columns = ['Pillar', 'KPI', 'Score', 'System Average', 'Variance']
    rows = [
        {
            'Pillar': kpi.pillar,
            'KPI': kpi.kpi,
            'Score': kpi.score,
            'System Average': kpi.system_average,
            'Variance': kpi.variance,
        }
        for kpi in analysis.kpis
        if pillar is None or kpi.pillar == pillar
    ]
    return pd.DataFrame(rows, columns=columns)
