import re
from typing import Dict, Iterable, List

from mutscan.core.models import NA, AnnotatedVariant, MutationRow

EXTRACTED_KEYS = ("gene", "product", "Feature_Type")


def _key_pattern(key: str):
    return re.compile(r"(?:^|;)" + re.escape(key) + r"=([^;]*)")


class AttributeExtractor:
    """Pulls gene, product and feature type out of a packed ``key=value;...`` string."""

    def __init__(self):
        self.keys = EXTRACTED_KEYS
        self._patterns = {key: _key_pattern(key) for key in self.keys}

    def extract(self, attributes: str) -> Dict[str, str]:
        fields = {key: NA for key in self.keys}
        if not attributes or attributes == NA:
            return fields
        for key, pattern in self._patterns.items():
            match = pattern.search(attributes)
            if match and match.group(1):
                fields[key] = match.group(1)
        return fields

    @staticmethod
    def normalize_kind(label: str) -> str:
        """``SNP_104`` -> ``SNP``."""
        return label.split('_', 1)[0]

    def to_row(self, annotated: AnnotatedVariant, reference: str) -> MutationRow:
        variant = annotated.variant
        fields = self.extract(annotated.attributes)
        return MutationRow(
            mutant_id=variant.mutant_id,
            reference=reference,
            kind=self.normalize_kind(variant.label),
            start=variant.start,
            end=variant.end,
            gene=fields["gene"],
            product=fields["product"],
            feature_type=fields["Feature_Type"],
            seq_id=variant.seq_id,
            ordinal=variant.ordinal,
        )

    def to_rows(self, annotated: Iterable[AnnotatedVariant], reference: str) -> List[MutationRow]:
        return [self.to_row(a, reference) for a in annotated]
