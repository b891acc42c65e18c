import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from mutscan.errors import CollaboratorFailureError

logger = logging.getLogger(__name__)

DEFAULT_SHOW_SNPS_ARGS = ["-C", "-l", "-r", "-T", "-x", "1"]


class MummerAligner:
    """
    Runs nucmer and show-snps for one mutant genome against the reference.

    nucmer writes ``<work_dir>/<mutant>.delta``; show-snps turns it into the
    tab-separated ``<work_dir>/<mutant>.snps`` table read by the classifier.
    """

    def __init__(self, work_dir: Path, nucmer: str = "nucmer", show_snps: str = "show-snps",
                 nucmer_args: Optional[Sequence[str]] = None,
                 show_snps_args: Optional[Sequence[str]] = None):
        self.work_dir = Path(work_dir)
        self.nucmer = nucmer
        self.show_snps = show_snps
        self.nucmer_args = list(nucmer_args or [])
        self.show_snps_args = list(show_snps_args) if show_snps_args is not None else list(DEFAULT_SHOW_SNPS_ARGS)

    def _run(self, cmd: List[str], mutant_id: str, tool: str) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError:
            raise CollaboratorFailureError(mutant_id, tool, f"executable not found: {cmd[0]}")
        except subprocess.CalledProcessError as e:
            raise CollaboratorFailureError(mutant_id, tool, (e.stderr or "").strip(), e.returncode)

    def align(self, reference_fasta: Path, mutant_fasta: Path, mutant_id: str) -> Path:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        prefix = self.work_dir / mutant_id
        cmd = [self.nucmer, *self.nucmer_args, "--prefix", str(prefix), str(reference_fasta), str(mutant_fasta)]
        self._run(cmd, mutant_id, "nucmer")

        delta = prefix.with_name(prefix.name + ".delta")
        if not delta.is_file() or delta.stat().st_size == 0:
            raise CollaboratorFailureError(mutant_id, "nucmer", f"no alignment written to {delta}")
        return delta

    def call_snps(self, delta: Path, mutant_id: str) -> Path:
        cmd = [self.show_snps, *self.show_snps_args, str(delta)]
        process = self._run(cmd, mutant_id, "show-snps")
        if not process.stdout.strip():
            raise CollaboratorFailureError(mutant_id, "show-snps", "empty output")

        snps_file = self.work_dir / f"{mutant_id}.snps"
        snps_file.write_text(process.stdout)
        return snps_file

    def run(self, reference_fasta: Path, mutant_fasta: Path, mutant_id: str) -> Path:
        """Align and call variants, returning the raw diff table."""
        logger.info(f"Aligning {mutant_id} against {Path(reference_fasta).name}")
        delta = self.align(reference_fasta, mutant_fasta, mutant_id)
        return self.call_snps(delta, mutant_id)
