"""
Merging of contiguous single-base fragments into multi-base mutations.

Rows must arrive grouped by mutant and, within a mutant, by reference sequence
in ascending start order. The merger checks this as it goes and raises
``MergeOrderingViolation`` instead of producing silently wrong merges.
"""
from enum import Enum
from typing import Iterable, List, Optional, Set, Tuple

from mutscan.core.models import MergedMutation, MutationRow
from mutscan.errors import MergeOrderingViolation


class MergeState(Enum):
    EMPTY = "empty"
    ACCUMULATING = "accumulating"


class IndelMerger:
    """
    Fold over ordered ``MutationRow``s.

    A row extends the current mutation when mutant, kind and sequence match and
    its start equals the current end. Each extension adds 1 to the size; the
    size is only computed as ``end - start`` when a mutation is started.
    """

    def __init__(self):
        self.state = MergeState.EMPTY
        self.current: Optional[MergedMutation] = None
        self._last: Optional[Tuple[str, str, int]] = None
        self._closed_mutants: Set[str] = set()
        self._closed_sequences: Set[Tuple[str, str]] = set()

    def _check_order(self, row: MutationRow):
        if self._last is None:
            return
        last_mutant, last_seq, last_start = self._last
        if row.mutant_id != last_mutant:
            self._closed_mutants.add(last_mutant)
            self._closed_sequences.add((last_mutant, last_seq))
            if row.mutant_id in self._closed_mutants:
                raise MergeOrderingViolation(
                    f"Rows for mutant '{row.mutant_id}' are not contiguous"
                )
        elif row.seq_id != last_seq:
            self._closed_sequences.add((last_mutant, last_seq))
            if (row.mutant_id, row.seq_id) in self._closed_sequences:
                raise MergeOrderingViolation(
                    f"Rows for {row.mutant_id}/{row.seq_id} are not contiguous"
                )
        elif row.start < last_start:
            raise MergeOrderingViolation(
                f"Rows for {row.mutant_id}/{row.seq_id} go backwards: {row.start} after {last_start}"
            )

    def _extends(self, row: MutationRow) -> bool:
        acc = self.current
        return (row.mutant_id == acc.mutant_id
                and row.kind == acc.kind
                and row.seq_id == acc.seq_id
                and row.start == acc.end)

    def feed(self, row: MutationRow) -> Optional[MergedMutation]:
        """Consume one row. Returns a finished mutation when the run breaks."""
        self._check_order(row)
        self._last = (row.mutant_id, row.seq_id, row.start)

        if self.state is MergeState.EMPTY:
            self.current = MergedMutation.from_row(row)
            self.state = MergeState.ACCUMULATING
            return None

        if self._extends(row):
            self.current.end = row.end
            self.current.size += 1
            return None

        finished = self.current
        self.current = MergedMutation.from_row(row)
        return finished

    def finish(self) -> Optional[MergedMutation]:
        """Flush the pending mutation, if any, and return to the empty state."""
        finished = self.current
        self.current = None
        self.state = MergeState.EMPTY
        self._last = None
        self._closed_mutants.clear()
        self._closed_sequences.clear()
        return finished


def merge_rows(rows: Iterable[MutationRow]) -> List[MergedMutation]:
    merger = IndelMerger()
    merged: List[MergedMutation] = []
    for row in rows:
        finished = merger.feed(row)
        if finished is not None:
            merged.append(finished)
    last = merger.finish()
    if last is not None:
        merged.append(last)
    return merged
