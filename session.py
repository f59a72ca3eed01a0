"""
Scorecard session state.

Owns the one current roster for a dashboard session. Each data-loading
event builds a new roster value and swaps it in whole, so readers always
see a consistent (roster, stats) snapshot.
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from scoring import SchoolRecord, SystemStats, normalize, build_roster, merge
from analysis import AnalysisRecord, analyze, find_school
from load_data import load_sheets


class ScorecardSession:
    """Holds the current roster and answers analysis requests against it."""

    def __init__(self):
        self._snapshot: Tuple[Tuple[SchoolRecord, ...], SystemStats] = ((), SystemStats(()))
        self.selected_id: Optional[str] = None

    @property
    def roster(self) -> Tuple[SchoolRecord, ...]:
        return self._snapshot[0]

    @property
    def stats(self) -> SystemStats:
        return self._snapshot[1]

    @property
    def is_loaded(self) -> bool:
        return bool(self.roster)

    def _publish(self, records: Sequence[SchoolRecord]) -> None:
        roster, stats = build_roster(records)
        self._snapshot = (tuple(roster), stats)
        if self.selected_id is not None and all(r.id != self.selected_id for r in roster):
            self.selected_id = None

    def load(self, sheets: Mapping[str, Sequence[Mapping[str, Any]]]) -> int:
        """
        Score a batch of sheets into the session.

        The first batch builds the roster; later batches are upserted by
        School ID. Returns the number of schools in the batch.

        Raises:
            EmptyResult: if the batch has no School Register rows; the
                current roster is left untouched
        """
        incoming = normalize(sheets)
        if self.is_loaded:
            self._publish(merge(self.roster, incoming))
        else:
            self._publish(incoming)
        return len(incoming)

    def load_file(self, source: Union[str, Path]) -> int:
        """Load a workbook / CSV source and score it into the session."""
        return self.load(load_sheets(source))

    def replace(self, sheets: Mapping[str, Sequence[Mapping[str, Any]]]) -> int:
        """Discard the current roster and rebuild from ``sheets``."""
        incoming = normalize(sheets)
        self._publish(incoming)
        return len(incoming)

    def reset(self) -> None:
        self._snapshot = ((), SystemStats(()))
        self.selected_id = None

    def select(self, school_id: str) -> AnalysisRecord:
        """Select a school and return its analysis against the current roster."""
        roster, stats = self._snapshot
        analysis = analyze(find_school(roster, school_id), roster, stats)
        self.selected_id = school_id
        return analysis

    def selected_analysis(self) -> Optional[AnalysisRecord]:
        """Analysis of the selected school, recomputed from the current snapshot."""
        if self.selected_id is None:
            return None
        return self.select(self.selected_id)
