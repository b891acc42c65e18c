import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from mutscan.core.models import PLACEHOLDER, MutationKind, VariantRecord
from mutscan.errors import MalformedRecordError

logger = logging.getLogger(__name__)

MIN_SNPS_FIELDS = 14


class VariantClassifier:
    """
    Turns show-snps rows into typed single-base variants.

    Fields used (1-based): 1 position, 2 reference base, 3 mutant base and
    ``seq_id_column`` for the reference sequence id. A ``.`` in the reference
    column marks an insertion, in the mutant column a deletion.
    """

    def __init__(self, seq_id_column: int = MIN_SNPS_FIELDS):
        if seq_id_column < 4:
            raise ValueError(f"seq_id_column must be >= 4, got {seq_id_column}")
        self.seq_id_column = seq_id_column
        self.min_fields = max(MIN_SNPS_FIELDS, seq_id_column)
        self.skipped = 0

    @staticmethod
    def classify_bases(ref_base: str, alt_base: str) -> MutationKind:
        if ref_base == PLACEHOLDER and alt_base == PLACEHOLDER:
            raise ValueError("both reference and mutant base are placeholders")
        if ref_base == PLACEHOLDER:
            return MutationKind.INSERTION
        if alt_base == PLACEHOLDER:
            return MutationKind.DELETION
        return MutationKind.SNP

    def parse_record(self, fields: Sequence[str], mutant_id: str, ordinal: int,
                     source: Optional[str] = None) -> VariantRecord:
        if len(fields) < self.min_fields:
            raise MalformedRecordError(
                f"expected at least {self.min_fields} fields, found {len(fields)}", source, ordinal
            )
        try:
            position = int(fields[0])
        except ValueError:
            raise MalformedRecordError(f"non-integer position '{fields[0]}'", source, ordinal)
        if position < 1:
            raise MalformedRecordError(f"position must be 1-based, got {position}", source, ordinal)

        ref_base, alt_base = fields[1].strip(), fields[2].strip()
        try:
            kind = self.classify_bases(ref_base, alt_base)
        except ValueError as e:
            raise MalformedRecordError(str(e), source, ordinal)

        return VariantRecord(
            mutant_id=mutant_id,
            seq_id=fields[self.seq_id_column - 1].strip(),
            position=position,
            ref_base=ref_base,
            alt_base=alt_base,
            kind=kind,
            ordinal=ordinal,
        )

    def classify(self, records: Iterable[Tuple[int, Sequence[str]]], mutant_id: str,
                 source: Optional[str] = None) -> List[VariantRecord]:
        """
        Classify ``(ordinal, fields)`` pairs, keeping input order.

        Malformed rows are logged and skipped; their ordinal is not reused.
        """
        variants: List[VariantRecord] = []
        for ordinal, fields in records:
            try:
                variants.append(self.parse_record(fields, mutant_id, ordinal, source))
            except MalformedRecordError as e:
                self.skipped += 1
                logger.warning(f"Skipping variant row for {mutant_id}: {e}")
        logger.debug(f"{mutant_id}: classified {len(variants)} variants")
        return variants

    def classify_rows(self, rows: Iterable[Sequence[str]], mutant_id: str,
                      first_ordinal: int = 1) -> List[VariantRecord]:
        """Classify bare field lists, numbering them from ``first_ordinal``."""
        return self.classify(enumerate(rows, start=first_ordinal), mutant_id)

    @staticmethod
    def split_by_kind(variants: Iterable[VariantRecord]) -> Dict[MutationKind, List[VariantRecord]]:
        streams: Dict[MutationKind, List[VariantRecord]] = {kind: [] for kind in MutationKind}
        for variant in variants:
            streams[variant.kind].append(variant)
        return streams
