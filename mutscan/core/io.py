import csv
import gzip
import logging
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple

import gffutils
from Bio import SeqIO

from mutscan.core.models import FEATURE_TYPES, OUTPUT_HEADER, GeneFeature, MergedMutation, MutationRow
from mutscan.errors import InputValidationError, MalformedRecordError

logger = logging.getLogger(__name__)

FASTA_SUFFIXES = (".fa", ".fasta", ".fna", ".fas")
SNPS_SUFFIX = ".snps"
GFF_MIN_FIELDS = 9


def open_text(path: Path) -> TextIO:
    """Open a plain or gzipped text file for reading."""
    path = Path(path)
    if path.suffix == ".gz":
        return gzip.open(path, "rt")
    return open(path, "r")


class FeatureIndexBuilder:
    """
    Converts a GFF-like annotation table into the feature index (genes.bed).

    Only rows whose feature type is in ``feature_types`` are kept. Coordinates
    are moved to 0-based half-open, spaces in the attribute column become
    underscores and the feature type is appended as ``Feature_Type=<type>``.
    """

    def __init__(self, feature_types: Sequence[str] = FEATURE_TYPES):
        self.feature_types = set(feature_types)
        self.skipped = 0

    @staticmethod
    def _parse_attributes(attr_string: str) -> Dict[str, List[str]]:
        attributes = defaultdict(list)
        for item in attr_string.strip().split(';'):
            if '=' in item:
                key, value = item.split('=', 1)
                attributes[key].append(value)
        return dict(attributes)

    @staticmethod
    def pack_attributes(record: gffutils.Feature) -> str:
        """Serialise the parsed attributes back to ``key=value;...`` and append the feature type."""
        items = [f"{key}={','.join(values)}" for key, values in record.attributes.items()]
        items.append(f"Feature_Type={record.featuretype}")
        return ';'.join(items)

    def _parse_line(self, line: str, line_number: int, source: str) -> Optional[gffutils.Feature]:
        parts = line.rstrip('\n').split('\t')
        if len(parts) < GFF_MIN_FIELDS:
            raise MalformedRecordError(
                f"expected at least {GFF_MIN_FIELDS} fields, found {len(parts)}", source, line_number
            )

        feature_type = parts[2]
        if feature_type not in self.feature_types:
            return None

        try:
            start, end = int(parts[3]), int(parts[4])
        except ValueError:
            raise MalformedRecordError(
                f"non-integer coordinates '{parts[3]}'..'{parts[4]}'", source, line_number
            )
        if start < 1 or start > end:
            raise MalformedRecordError(f"invalid interval {start}..{end}", source, line_number)

        return gffutils.Feature(
            seqid=parts[0], source=parts[1], featuretype=feature_type,
            start=start, end=end, score=parts[5], strand=parts[6], frame=parts[7],
            attributes=self._parse_attributes(parts[8].replace(' ', '_')),
        )

    def build_from_lines(self, lines: Iterable[str], source: str = "<annotation>") -> List[GeneFeature]:
        features: List[GeneFeature] = []
        for line_number, line in enumerate(lines, start=1):
            if not line.strip() or line.startswith('#'):
                continue
            try:
                record = self._parse_line(line, line_number, source)
            except MalformedRecordError as e:
                self.skipped += 1
                logger.warning(f"Skipping annotation row: {e}")
                continue
            if record is None:
                continue

            features.append(GeneFeature(
                seq_id=record.seqid,
                start=record.start - 1,
                end=record.end,
                attributes=self.pack_attributes(record),
                feature_type=record.featuretype,
                index=len(features),
            ))
        return features

    def build(self, annotation_file: Path) -> List[GeneFeature]:
        annotation_file = Path(annotation_file)
        if not annotation_file.is_file():
            raise InputValidationError(f"Annotation file not found: {annotation_file}")

        logger.info(f"Building feature index from {annotation_file}")
        with open_text(annotation_file) as f:
            features = self.build_from_lines(f, source=str(annotation_file))
        logger.info(f"Feature index holds {len(features)} features ({self.skipped} malformed rows skipped)")
        return features


def write_bed(features: Iterable[GeneFeature], output_file: Path) -> Path:
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', newline='') as f:
        writer = csv.writer(f, delimiter='\t', lineterminator='\n')
        for feature in features:
            writer.writerow(feature.to_bed_fields())
    return output_file


def read_snps_file(snps_file: Path, header_lines: int = 4) -> Iterator[Tuple[int, List[str]]]:
    """
    Yields ``(line_number, fields)`` for each record of a show-snps table.

    Line numbers are 1-based and count the header, like awk's NR.
    """
    try:
        with open_text(snps_file) as f:
            for line_number, line in enumerate(f, start=1):
                if line_number <= header_lines:
                    continue
                line = line.rstrip('\n')
                if not line.strip():
                    continue
                yield line_number, line.split('\t')
    except (OSError, UnicodeDecodeError) as e:
        raise InputValidationError(f"Cannot read show-snps table {snps_file}: {e}")


def write_mutation_table(mutations: Iterable[MergedMutation], output_file: Optional[Path] = None) -> int:
    """Writes the final mutation table. ``None`` writes to stdout. Returns the row count."""
    count = 0
    if output_file is None:
        handle = sys.stdout
    else:
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        handle = open(output_file, 'w', newline='')
    try:
        writer = csv.writer(handle, delimiter='\t', lineterminator='\n')
        writer.writerow(OUTPUT_HEADER)
        for mutation in mutations:
            writer.writerow(mutation.to_row())
            count += 1
    finally:
        if output_file is not None:
            handle.close()
    return count


def write_annotated_rows(rows: Iterable[MutationRow], output_file: Path) -> Path:
    """Per-mutant intermediate table, before merging."""
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', newline='') as f:
        writer = csv.writer(f, delimiter='\t', lineterminator='\n')
        writer.writerow(OUTPUT_HEADER[:-1])
        for row in rows:
            writer.writerow([
                row.mutant_id, row.reference, row.kind, row.start, row.end,
                row.gene, row.product, row.feature_type,
            ])
    return output_file


def file_stem(path: Path) -> str:
    """``ref.fa.gz`` -> ``ref``."""
    path = Path(path)
    if path.suffix == ".gz":
        path = path.with_suffix("")
    return path.stem


def is_fasta(path: Path) -> bool:
    path = Path(path)
    if path.suffix == ".gz":
        path = path.with_suffix("")
    return path.suffix.lower() in FASTA_SUFFIXES


def check_fasta(fasta_file: Path) -> int:
    """Returns the number of sequence records, raising if there are none."""
    try:
        with open_text(fasta_file) as f:
            count = sum(1 for _ in SeqIO.parse(f, "fasta"))
    except (OSError, ValueError) as e:
        raise InputValidationError(f"Cannot read FASTA file {fasta_file}: {e}")
    if count == 0:
        raise InputValidationError(f"FASTA file has no sequence records: {fasta_file}")
    return count


def resolve_reference(reference: Path) -> Path:
    """A reference is a FASTA file or a directory holding exactly one FASTA."""
    reference = Path(reference)
    if reference.is_dir():
        candidates = sorted(p for p in reference.iterdir() if p.is_file() and is_fasta(p))
        if not candidates:
            raise InputValidationError(f"No reference genome found in {reference}")
        if len(candidates) > 1:
            names = ", ".join(p.name for p in candidates)
            raise InputValidationError(f"Multiple reference genomes found in {reference}: {names}")
        reference = candidates[0]
    elif not reference.is_file():
        raise InputValidationError(f"Reference genome not found: {reference}")

    check_fasta(reference)
    return reference


def discover_mutants(directory: Path, suffix: Optional[str] = None,
                     exclude: Iterable[Path] = ()) -> Dict[str, Path]:
    """
    Maps mutant id (file stem) to input file.

    With ``suffix`` only files with that suffix are taken, otherwise FASTA files.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise InputValidationError(f"Mutant directory not found: {directory}")

    excluded = {Path(p).resolve() for p in exclude}
    mutants: Dict[str, Path] = {}
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.resolve() in excluded:
            continue
        if suffix is not None:
            if not path.name.endswith(suffix):
                continue
            mutant_id = path.name[:-len(suffix)]
        elif is_fasta(path):
            mutant_id = file_stem(path)
        else:
            continue
        if mutant_id in mutants:
            raise InputValidationError(f"Duplicate mutant id '{mutant_id}' in {directory}")
        mutants[mutant_id] = path

    if not mutants:
        raise InputValidationError(f"No mutant inputs found in {directory}")
    return mutants
