"""
Overlap join between variant intervals and the feature index.

The geometric part (which pairs overlap, and by how much) is delegated to an
interval-join primitive: ``bedtools intersect`` when it is installed, an
``intervaltree`` index otherwise. Selecting the best feature for each variant
is a separate pure function, so every backend yields the same annotation.
"""
import logging
import shutil
import subprocess
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from intervaltree import IntervalTree

from mutscan.core.models import AnnotatedVariant, GeneFeature, VariantRecord
from mutscan.errors import CollaboratorFailureError

logger = logging.getLogger(__name__)

Overlap = Tuple[VariantRecord, GeneFeature, int]

JOIN_BACKENDS = ("auto", "bedtools", "intervaltree", "naive")


def _mutant_of(variants: Sequence[VariantRecord]) -> str:
    return variants[0].mutant_id if variants else "<none>"


class NaiveJoin:
    """Pairwise scan, O(V*F). Slow but obviously correct."""

    name = "naive"

    def __call__(self, variants: Sequence[VariantRecord], features: Sequence[GeneFeature]) -> List[Overlap]:
        overlaps = []
        for variant in variants:
            for feature in features:
                if feature.seq_id != variant.seq_id:
                    continue
                overlap = min(variant.end, feature.end) - max(variant.start, feature.start)
                if overlap > 0:
                    overlaps.append((variant, feature, overlap))
        return overlaps


class IntervalTreeJoin:
    """In-process join with one interval tree per reference sequence."""

    name = "intervaltree"

    def __call__(self, variants: Sequence[VariantRecord], features: Sequence[GeneFeature]) -> List[Overlap]:
        trees: Dict[str, IntervalTree] = defaultdict(IntervalTree)
        for feature in features:
            trees[feature.seq_id].addi(feature.start, feature.end, feature)

        overlaps = []
        for variant in variants:
            tree = trees.get(variant.seq_id)
            if tree is None:
                continue
            for hit in sorted(tree.overlap(variant.start, variant.end), key=lambda iv: iv.data.index):
                overlap = min(variant.end, hit.end) - max(variant.start, hit.begin)
                if overlap > 0:
                    overlaps.append((variant, hit.data, overlap))
        return overlaps


class BedtoolsJoin:
    """Runs ``bedtools intersect -wo`` on temporary BED files."""

    name = "bedtools"

    def __init__(self, executable: str = "bedtools"):
        self.executable = executable

    @staticmethod
    def _write_bed(path: Path, rows: Iterable[Tuple[str, int, int, int]]):
        with open(path, 'w') as f:
            for seq_id, start, end, index in rows:
                f.write(f"{seq_id}\t{start}\t{end}\t{index}\n")

    def __call__(self, variants: Sequence[VariantRecord], features: Sequence[GeneFeature]) -> List[Overlap]:
        if not variants or not features:
            return []
        mutant_id = _mutant_of(variants)

        with tempfile.TemporaryDirectory(prefix="mutscan_join_") as tmp:
            variants_bed = Path(tmp) / "variants.bed"
            genes_bed = Path(tmp) / "genes.bed"
            self._write_bed(variants_bed, ((v.seq_id, v.start, v.end, i) for i, v in enumerate(variants)))
            self._write_bed(genes_bed, ((f.seq_id, f.start, f.end, i) for i, f in enumerate(features)))

            cmd = [self.executable, "intersect", "-a", str(variants_bed), "-b", str(genes_bed), "-wo"]
            logger.debug(f"Running: {' '.join(cmd)}")
            try:
                process = subprocess.run(cmd, capture_output=True, text=True, check=True)
            except FileNotFoundError:
                raise CollaboratorFailureError(mutant_id, "bedtools", f"executable not found: {self.executable}")
            except subprocess.CalledProcessError as e:
                raise CollaboratorFailureError(mutant_id, "bedtools", e.stderr.strip(), e.returncode)

        overlaps = []
        for line in process.stdout.splitlines():
            if not line:
                continue
            parts = line.split('\t')
            if len(parts) < 9:
                raise CollaboratorFailureError(mutant_id, "bedtools", f"unexpected output line: {line!r}")
            overlaps.append((variants[int(parts[3])], features[int(parts[7])], int(parts[8])))
        return overlaps


def make_join(backend: str = "auto", bedtools: str = "bedtools"):
    """Returns the interval-join primitive for ``backend``."""
    if backend not in JOIN_BACKENDS:
        raise ValueError(f"Unknown join backend '{backend}', expected one of {', '.join(JOIN_BACKENDS)}")
    if backend == "auto":
        if shutil.which(bedtools):
            backend = "bedtools"
        else:
            logger.info("bedtools not found on PATH, using the in-process interval tree join")
            backend = "intervaltree"

    if backend == "bedtools":
        return BedtoolsJoin(bedtools)
    if backend == "intervaltree":
        return IntervalTreeJoin()
    return NaiveJoin()


def select_best_overlap(variant: VariantRecord,
                        candidates: Iterable[Tuple[GeneFeature, int]]) -> AnnotatedVariant:
    """
    Keep the candidate feature with the largest overlap.

    Ties go to the feature that comes first in the feature index, whatever
    order the candidates arrive in.
    """
    best: Optional[GeneFeature] = None
    best_overlap = 0
    for feature, overlap in candidates:
        if overlap <= 0:
            continue
        if best is None or overlap > best_overlap or (overlap == best_overlap and feature.index < best.index):
            best, best_overlap = feature, overlap
    return AnnotatedVariant(variant=variant, feature=best, overlap=best_overlap)


class AnnotationJoiner:
    """Annotates each variant with at most one feature."""

    def __init__(self, join=None):
        self.join_primitive = join if join is not None else make_join("auto")

    def join(self, variants: Sequence[VariantRecord], features: Sequence[GeneFeature]) -> List[AnnotatedVariant]:
        candidates: Dict[int, List[Tuple[GeneFeature, int]]] = defaultdict(list)
        if variants and features:
            for variant, feature, overlap in self.join_primitive(variants, features):
                candidates[id(variant)].append((feature, overlap))

        annotated = [select_best_overlap(v, candidates.get(id(v), ())) for v in variants]
        unannotated = sum(1 for a in annotated if a.feature is None)
        if variants:
            logger.debug(f"{_mutant_of(variants)}: {len(annotated) - unannotated} variants annotated, "
                         f"{unannotated} outside features")
        return annotated
