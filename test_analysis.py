"""
Tests for comparative analysis.

Covers rank/percentile, pillar comparison, strengths and weaknesses,
district peers, KPI variance, roster slices and report frames.
"""

import pytest

from config import PILLAR_KEYS
from scoring import NotFoundError, build_school_record, build_roster
from analysis import (
    analyze, percentile_of, rank_of, find_school, top_schools, bottom_schools,
    rankings_frame, kpi_breakdown_frame,
)


def make_school(school_id, score, district=""):
    """School whose four pillars (and so its overall) all equal ``score``."""
    return build_school_record(
        school_id, f"School {school_id}", district,
        kpi_detail={key: {"K1": score} for key in PILLAR_KEYS},
    )


@pytest.fixture
def four_schools():
    """A=90 and B=70 share North, C=50 is South, D=30 is alone in East."""
    return build_roster([
        make_school("C", 50, "South"),
        make_school("A", 90, "North"),
        make_school("D", 30, "East"),
        make_school("B", 70, "North"),
    ])


# =============================================================================
# RANK & PERCENTILE
# =============================================================================

class TestRankAndPercentile:
    """Tests for rank and percentile."""

    def test_rank_is_roster_position(self, four_schools):
        roster, _ = four_schools
        assert [rank_of(roster, s) for s in ["A", "B", "C", "D"]] == [1, 2, 3, 4]

    def test_percentile(self, four_schools):
        roster, stats = four_schools
        assert analyze(find_school(roster, "A"), roster, stats).percentile == 75.0
        assert analyze(find_school(roster, "B"), roster, stats).percentile == 50.0
        assert analyze(find_school(roster, "D"), roster, stats).percentile == 0.0

    def test_percentile_is_one_decimal(self):
        roster, stats = build_roster([make_school(s, 90 - i) for i, s in enumerate("XYZ")])
        assert analyze(roster[0], roster, stats).percentile == 66.7

    def test_percentile_rounds_half_up(self):
        assert percentile_of(351, 400) == 12.3
        assert percentile_of(1, 8) == 87.5
        assert percentile_of(1, 4) == 75.0
        assert percentile_of(4, 4) == 0.0

    def test_unknown_school_raises(self, four_schools):
        roster, stats = four_schools
        with pytest.raises(NotFoundError):
            analyze(make_school("Z", 40), roster, stats)
        with pytest.raises(NotFoundError):
            find_school(roster, "Z")


# =============================================================================
# PILLARS
# =============================================================================

class TestPillarComparison:
    """Tests for per-pillar comparison rows."""

    def test_variance_rank_and_range(self, four_schools):
        roster, stats = four_schools
        analysis = analyze(find_school(roster, "B"), roster, stats)

        assert [p.pillar for p in analysis.pillars] == PILLAR_KEYS
        ae = analysis.pillars[0]
        assert ae.name == "Academic Excellence"
        assert ae.score == 70.0
        assert ae.system_average == pytest.approx(60.0)
        assert ae.variance == pytest.approx(10.0)
        assert ae.rank == 2
        assert (ae.minimum, ae.maximum) == (30.0, 90.0)

    def test_rank_counts_strictly_higher_scores(self):
        roster, stats = build_roster([make_school("P", 80), make_school("Q", 80), make_school("R", 50)])
        ranks = {s.id: analyze(s, roster, stats).pillars[0].rank for s in roster}
        assert ranks == {"P": 1, "Q": 1, "R": 3}

    def test_ties_below_the_top_share_a_rank(self):
        roster, stats = build_roster([make_school("P", 90), make_school("Q", 60), make_school("R", 60)])
        ranks = {s.id: analyze(s, roster, stats).pillars[0].rank for s in roster}
        assert ranks == {"P": 1, "Q": 2, "R": 2}

    def test_strengths_and_weaknesses(self):
        mixed = build_school_record("X", "Mixed", kpi_detail={
            "AE": {"K1": 90}, "SD": {"K1": 20}, "TL": {"K1": 70}, "CS": {"K1": 10},
        })
        roster, stats = build_roster([mixed, make_school("Y", 50)])
        analysis = analyze(mixed, roster, stats)

        assert [p.pillar for p in analysis.strengths] == ["AE", "TL"]
        assert [p.pillar for p in analysis.weaknesses] == ["SD", "CS"]

    def test_score_at_average_is_a_weakness(self):
        roster, stats = build_roster([make_school("A", 80), make_school("B", 60), make_school("C", 40)])
        analysis = analyze(find_school(roster, "B"), roster, stats)
        assert analysis.strengths == []
        assert len(analysis.weaknesses) == 4

    def test_top_school_has_only_strengths(self, four_schools):
        roster, stats = four_schools
        analysis = analyze(find_school(roster, "A"), roster, stats)
        assert len(analysis.strengths) == 4
        assert analysis.weaknesses == []


# =============================================================================
# DISTRICT
# =============================================================================

class TestDistrictComparison:
    """Tests for district peer comparison."""

    def test_peers_in_district(self, four_schools):
        roster, stats = four_schools
        a = analyze(find_school(roster, "A"), roster, stats).district
        b = analyze(find_school(roster, "B"), roster, stats).district

        assert (a.district, a.average, a.rank, a.total) == ("North", 70.0, 1, 2)
        assert (b.average, b.rank, b.total) == (90.0, 2, 2)

    def test_school_alone_in_district(self, four_schools):
        roster, stats = four_schools
        d = analyze(find_school(roster, "D"), roster, stats).district
        assert d.average is None
        assert (d.rank, d.total) == (1, 1)

    def test_tied_peer_ranks_ahead(self):
        roster, stats = build_roster([make_school("P", 50, "West"), make_school("Q", 50, "West")])
        assert analyze(find_school(roster, "P"), roster, stats).district.rank == 2
        assert analyze(find_school(roster, "Q"), roster, stats).district.rank == 2


# =============================================================================
# KPIS
# =============================================================================

class TestKpiComparison:
    """Tests for KPI-level variance."""

    def roster(self):
        return build_roster([
            build_school_record("S1", "One", kpi_detail={"AE": {"K1": 60, "Extra": 30}}),
            build_school_record("S2", "Two", kpi_detail={"AE": {"K1": 40}}),
            build_school_record("S3", "Three", kpi_detail={"AE": {"K1": 20}}),
        ])

    def test_kpi_system_average(self):
        roster, stats = self.roster()
        analysis = analyze(find_school(roster, "S1"), roster, stats)
        kpis = {k.kpi: k for k in analysis.kpis}

        assert list(kpis) == ["K1", "Extra"]
        assert kpis["K1"].system_average == pytest.approx(40.0)
        assert kpis["K1"].variance == pytest.approx(20.0)

    def test_missing_kpi_counts_as_zero(self):
        roster, stats = self.roster()
        extra = [k for k in analyze(find_school(roster, "S1"), roster, stats).kpis if k.kpi == "Extra"][0]
        assert extra.system_average == pytest.approx(30.0 / len(roster))
        assert extra.variance > 0

    def test_only_own_kpis_are_listed(self):
        roster, stats = self.roster()
        analysis = analyze(find_school(roster, "S2"), roster, stats)
        assert [k.kpi for k in analysis.kpis] == ["K1"]
        assert all(k.pillar == "AE" for k in analysis.kpis)


# =============================================================================
# SLICES & FRAMES
# =============================================================================

class TestSlicesAndFrames:
    """Tests for top/bottom lists and report DataFrames."""

    def test_top_and_bottom(self, four_schools):
        roster, _ = four_schools
        assert [s.id for s in top_schools(roster, 2)] == ["A", "B"]
        assert [s.id for s in bottom_schools(roster, 2)] == ["D", "C"]
        assert top_schools(roster, 0) == []
        assert bottom_schools(roster, 0) == []
        assert len(top_schools(roster)) == 4

    def test_rankings_frame(self, four_schools):
        roster, _ = four_schools
        df = rankings_frame(roster)
        assert list(df.columns) == ['Rank', 'School ID', 'School', 'District', 'Type',
                                    'AE', 'SD', 'TL', 'CS', 'Overall', 'Status']
        assert df['Rank'].tolist() == [1, 2, 3, 4]
        assert df['School ID'].tolist() == ["A", "B", "C", "D"]
        assert df.iloc[0]['Status'] == "Excellent"

    def test_empty_rankings_frame(self):
        assert rankings_frame([]).empty

    def test_kpi_breakdown_frame(self, four_schools):
        roster, stats = four_schools
        analysis = analyze(find_school(roster, "A"), roster, stats)
        df = kpi_breakdown_frame(analysis)
        assert len(df) == 4
        assert len(kpi_breakdown_frame(analysis, "SD")) == 1
        with pytest.raises(ValueError):
            kpi_breakdown_frame(analysis, "XX")

    def test_analysis_leaves_roster_untouched(self, four_schools):
        roster, stats = four_schools
        before = [s.id for s in roster]
        analyze(roster[2], roster, stats)
        assert [s.id for s in roster] == before
