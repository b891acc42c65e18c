from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

NA = "NA"
PLACEHOLDER = "."
FEATURE_TYPES = ("CDS", "misc_RNA", "rRNA", "tRNA")

OUTPUT_HEADER = [
    "Mutant", "Reference", "Mutation", "StartPos", "EndPos",
    "Gene", "Product", "Feature_Type", "Mutation_Size",
]


class MutationKind(Enum):
    SNP = "SNP"
    INSERTION = "insertion"
    DELETION = "deletion"


@dataclass(frozen=True)
class GeneFeature:
    """An annotated reference region, 0-based half-open."""
    seq_id: str
    start: int
    end: int
    attributes: str
    feature_type: str
    index: int = 0

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Feature start {self.start} must be < end {self.end}")

    def to_bed_fields(self) -> List[str]:
        return [self.seq_id, str(self.start), str(self.end), self.attributes]


@dataclass(frozen=True)
class VariantRecord:
    """A single-base difference between a mutant and the reference."""
    mutant_id: str
    seq_id: str
    position: int
    ref_base: str
    alt_base: str
    kind: MutationKind
    ordinal: int

    @property
    def start(self) -> int:
        return self.position - 1

    @property
    def end(self) -> int:
        return self.position

    @property
    def label(self) -> str:
        return f"{self.kind.value}_{self.ordinal}"


@dataclass
class AnnotatedVariant:
    """A variant paired with its best-overlapping feature, if any."""
    variant: VariantRecord
    feature: Optional[GeneFeature] = None
    overlap: int = 0

    @property
    def attributes(self) -> str:
        return self.feature.attributes if self.feature is not None else NA


@dataclass
class MutationRow:
    mutant_id: str
    reference: str
    kind: str
    start: int
    end: int
    gene: str = NA
    product: str = NA
    feature_type: str = NA
    seq_id: str = ""
    ordinal: int = 0

    def sort_key(self) -> Tuple[str, str, int, int]:
        return (self.mutant_id, self.seq_id, self.start, self.ordinal)


@dataclass
class MergedMutation:
    mutant_id: str
    reference: str
    kind: str
    start: int
    end: int
    gene: str
    product: str
    feature_type: str
    size: int
    seq_id: str = ""

    @classmethod
    def from_row(cls, row: MutationRow) -> "MergedMutation":
        return cls(
            mutant_id=row.mutant_id, reference=row.reference, kind=row.kind,
            start=row.start, end=row.end, gene=row.gene, product=row.product,
            feature_type=row.feature_type, size=row.end - row.start,
            seq_id=row.seq_id,
        )

    def to_row(self) -> List[str]:
        return [
            self.mutant_id, self.reference, self.kind, str(self.start), str(self.end),
            self.gene, self.product, self.feature_type, str(self.size),
        ]


@dataclass
class MutantResult:
    """Outcome of processing one mutant genome."""
    mutant_id: str
    rows: List[MutationRow] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PipelineSummary:
    succeeded: List[str] = field(default_factory=list)
    failed: List[MutantResult] = field(default_factory=list)
    mutations: List[MergedMutation] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)
