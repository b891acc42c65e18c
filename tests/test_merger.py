import pytest

from mutscan.core.models import MutationRow
from mutscan.errors import MergeOrderingViolation
from mutscan.variation.merger import IndelMerger, MergeState, merge_rows


def row(start, end=None, kind="deletion", mutant="M1", seq_id="chr1", gene="abc"):
    end = start + 1 if end is None else end
    return MutationRow(mutant, "ref", kind, start, end, gene, "enzyme", "CDS", seq_id=seq_id, ordinal=start)


def test_contiguous_run_merges():
    merged = merge_rows([row(10), row(11), row(12)])
    assert len(merged) == 1
    assert (merged[0].start, merged[0].end, merged[0].size) == (10, 13, 3)
    assert merged[0].kind == "deletion"


def test_single_row_is_unchanged():
    merged = merge_rows([row(10)])
    assert len(merged) == 1
    assert (merged[0].start, merged[0].end, merged[0].size) == (10, 11, 1)


def test_idempotent_on_merged_row():
    once = merge_rows([row(10), row(11), row(12)])[0]
    again = merge_rows([row(once.start, once.end)])
    assert len(again) == 1
    assert (again[0].start, again[0].end, again[0].size) == (10, 13, once.size)


def test_no_merge_across_kind_change():
    merged = merge_rows([row(10, kind="SNP"), row(11, kind="deletion")])
    assert [(m.kind, m.start, m.end, m.size) for m in merged] == [("SNP", 10, 11, 1), ("deletion", 11, 12, 1)]


def test_no_merge_across_mutants():
    merged = merge_rows([row(10, mutant="M1"), row(11, mutant="M2")])
    assert [m.mutant_id for m in merged] == ["M1", "M2"]


def test_no_merge_across_sequences():
    merged = merge_rows([row(10, seq_id="chr1"), row(11, seq_id="chr2")])
    assert len(merged) == 2


def test_gap_breaks_run():
    merged = merge_rows([row(10), row(11), row(13), row(14)])
    assert [(m.start, m.end, m.size) for m in merged] == [(10, 12, 2), (13, 15, 2)]


def test_repeated_insertion_position_does_not_merge():
    merged = merge_rows([row(10, kind="insertion"), row(10, kind="insertion")])
    assert len(merged) == 2


def test_trailing_fragment_is_flushed_once():
    merged = merge_rows([row(5, kind="SNP"), row(10), row(11), row(20)])
    assert [(m.kind, m.start, m.end) for m in merged] == [("SNP", 5, 6), ("deletion", 10, 12), ("deletion", 20, 21)]
    assert sum(1 for m in merged if m.start == 20) == 1


def test_merged_row_keeps_first_annotation():
    merged = merge_rows([row(10, gene="first"), row(11, gene="second")])
    assert merged[0].gene == "first"


def test_empty_input():
    assert merge_rows([]) == []


@pytest.mark.parametrize("length", [1, 2, 5, 30])
def test_incremental_size_matches_span_for_single_base_runs(length):
    merged = merge_rows([row(100 + i) for i in range(length)])
    assert len(merged) == 1
    assert merged[0].size == merged[0].end - merged[0].start == length


def test_incremental_size_with_multi_base_seed():
    # size is end - start only when a run starts, later fragments add 1 each
    merged = merge_rows([row(10, 13), row(13, 14)])
    assert (merged[0].start, merged[0].end, merged[0].size) == (10, 14, 4)
    merged = merge_rows([row(10, 11), row(11, 14)])
    assert (merged[0].start, merged[0].end, merged[0].size) == (10, 14, 2)


def test_state_machine():
    merger = IndelMerger()
    assert merger.state is MergeState.EMPTY
    assert merger.feed(row(10)) is None
    assert merger.state is MergeState.ACCUMULATING
    assert merger.feed(row(11)) is None
    finished = merger.feed(row(20))
    assert (finished.start, finished.end, finished.size) == (10, 12, 2)
    last = merger.finish()
    assert (last.start, last.end) == (20, 21)
    assert merger.state is MergeState.EMPTY
    assert merger.finish() is None


def test_mutant_reappearing_is_rejected():
    with pytest.raises(MergeOrderingViolation):
        merge_rows([row(10, mutant="M1"), row(10, mutant="M2"), row(12, mutant="M1")])


def test_sequence_reappearing_is_rejected():
    with pytest.raises(MergeOrderingViolation):
        merge_rows([row(10, seq_id="chr1"), row(10, seq_id="chr2"), row(12, seq_id="chr1")])


def test_backwards_start_is_rejected():
    with pytest.raises(MergeOrderingViolation):
        merge_rows([row(12), row(10)])


def test_merger_is_reusable_after_finish():
    merger = IndelMerger()
    merger.feed(row(20))
    merger.feed(row(10, mutant="M2"))
    assert merger.finish().mutant_id == "M2"

    # a new group may start anywhere, including a mutant seen before
    assert merger.feed(row(10)) is None
    assert merger.feed(row(11)) is None
    again = merger.finish()
    assert (again.mutant_id, again.start, again.end, again.size) == ("M1", 10, 12, 2)
