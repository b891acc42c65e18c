"""
End-to-end orchestration: one reference, one annotation, many mutants.

Each mutant is aligned (unless its show-snps table is supplied), classified,
joined against the feature index and flattened into rows on a worker thread.
The rows of every successful mutant are then sorted and merged into the final
mutation table. A mutant that fails is reported and skipped.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from tqdm import tqdm

from mutscan.alignment.mummer import MummerAligner
from mutscan.annotation.attributes import AttributeExtractor
from mutscan.annotation.joiner import AnnotationJoiner, make_join
from mutscan.config import Config
from mutscan.core.io import (
    SNPS_SUFFIX,
    FeatureIndexBuilder,
    check_fasta,
    discover_mutants,
    file_stem,
    read_snps_file,
    resolve_reference,
    write_annotated_rows,
    write_bed,
    write_mutation_table,
)
from mutscan.core.models import GeneFeature, MergedMutation, MutantResult, MutationRow, PipelineSummary
from mutscan.errors import MutscanError
from mutscan.variation.classifier import VariantClassifier
from mutscan.variation.merger import merge_rows

logger = logging.getLogger(__name__)


def order_rows(rows: Sequence[MutationRow]) -> List[MutationRow]:
    """Sort rows by their explicit ordering key so the merger sees contiguous runs."""
    return sorted(rows, key=MutationRow.sort_key)


class MutationPipeline:
    def __init__(self, config: Config):
        self.config = config
        self.work_dir = Path(config.get("work_dir"))
        self.threads = config.get("threads")
        self.keep_intermediate = bool(config.get("keep_intermediate"))

        self.feature_builder = FeatureIndexBuilder()
        self.seq_id_column = config.get("seq_id_column")
        self.joiner = AnnotationJoiner(make_join(config.get("join_backend"), config.get("bedtools")))
        self.extractor = AttributeExtractor()
        self.aligner = MummerAligner(
            self.work_dir,
            nucmer=config.get("nucmer"),
            show_snps=config.get("show_snps"),
            nucmer_args=config.get("nucmer_args"),
            show_snps_args=config.get("show_snps_args"),
        )

        self.reference_fasta: Optional[Path] = None
        self.reference_name: Optional[str] = None
        self.mutant_inputs: Dict[str, Path] = {}
        self.precomputed = config.get("snps_dir") is not None
        self.features: List[GeneFeature] = []

    def resolve_inputs(self) -> None:
        """Structural checks; any failure here is fatal."""
        self.reference_fasta = resolve_reference(Path(self.config.get("reference")))
        self.reference_name = self.config.get("reference_name") or file_stem(self.reference_fasta)

        if self.precomputed:
            self.mutant_inputs = discover_mutants(Path(self.config.get("snps_dir")), suffix=SNPS_SUFFIX)
        else:
            self.mutant_inputs = discover_mutants(
                Path(self.config.get("mutants_dir")), exclude=[self.reference_fasta]
            )
        logger.info(f"Reference '{self.reference_name}' ({self.reference_fasta}), "
                    f"{len(self.mutant_inputs)} mutants")

    def load_features(self) -> List[GeneFeature]:
        self.features = self.feature_builder.build(Path(self.config.get("annotation")))
        if self.keep_intermediate:
            write_bed(self.features, self.work_dir / "genes.bed")
        return self.features

    def process_mutant(self, mutant_id: str, input_file: Path) -> List[MutationRow]:
        """Align (if needed), classify, join and flatten one mutant."""
        if self.precomputed:
            snps_file = input_file
        else:
            check_fasta(input_file)
            snps_file = self.aligner.run(self.reference_fasta, input_file, mutant_id)

        records = read_snps_file(snps_file, header_lines=self.config.get("snps_header_lines"))
        classifier = VariantClassifier(seq_id_column=self.seq_id_column)
        variants = classifier.classify(records, mutant_id, source=str(snps_file))
        annotated = self.joiner.join(variants, self.features)
        rows = self.extractor.to_rows(annotated, self.reference_name)

        if self.keep_intermediate:
            write_annotated_rows(rows, self.work_dir / f"{mutant_id}.annotated.tsv")
        logger.info(f"{mutant_id}: {len(rows)} variants")
        return rows

    def _run_mutant(self, mutant_id: str, input_file: Path) -> MutantResult:
        try:
            return MutantResult(mutant_id, rows=self.process_mutant(mutant_id, input_file))
        except (MutscanError, OSError, ValueError) as e:
            logger.error(f"Mutant {mutant_id} failed: {e}")
            return MutantResult(mutant_id, error=str(e))

    def process_mutants(self) -> List[MutantResult]:
        results: List[MutantResult] = []
        workers = min(self.threads, len(self.mutant_inputs)) or 1
        logger.info(f"Processing {len(self.mutant_inputs)} mutants with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._run_mutant, mutant_id, path): mutant_id
                for mutant_id, path in self.mutant_inputs.items()
            }
            with tqdm(total=len(futures), desc="Mutants", unit=" genome") as pbar:
                for future in as_completed(futures):
                    results.append(future.result())
                    pbar.update(1)

        results.sort(key=lambda r: r.mutant_id)
        return results

    def merge(self, results: Sequence[MutantResult]) -> List[MergedMutation]:
        rows = [row for result in results if result.ok for row in result.rows]
        merged = merge_rows(order_rows(rows))
        logger.info(f"Merged {len(rows)} rows into {len(merged)} mutations")
        return merged

    def run(self, output_file: Optional[Path] = None) -> PipelineSummary:
        self.resolve_inputs()
        self.load_features()

        results = self.process_mutants()
        summary = PipelineSummary(
            succeeded=[r.mutant_id for r in results if r.ok],
            failed=[r for r in results if not r.ok],
        )
        summary.mutations = self.merge(results)

        if output_file is None and self.config.get("output_file"):
            output_file = Path(self.config.get("output_file"))
        written = write_mutation_table(summary.mutations, output_file)

        logger.info(f"Wrote {written} mutations for {len(summary.succeeded)} mutants"
                    + (f" to {output_file}" if output_file else ""))
        if summary.failed:
            logger.warning(f"{len(summary.failed)} of {len(results)} mutants failed: "
                           + ", ".join(r.mutant_id for r in summary.failed))
        return summary
