"""
Exception hierarchy for mutscan.

Structural input problems are fatal at startup, malformed records are skipped,
collaborator failures are isolated to a single mutant.
"""
from typing import Optional


class MutscanError(Exception):
    """Base class for all mutscan errors."""
    pass


class InputValidationError(MutscanError):
    """Missing or malformed required input (annotation, reference genome, mutants)."""
    pass


class MalformedRecordError(MutscanError):
    """A single input row that cannot be used. Skipped with a warning."""

    def __init__(self, message: str, source: Optional[str] = None, line_number: Optional[int] = None):
        self.source = source
        self.line_number = line_number
        location = ""
        if source is not None:
            location = f"{source}:{line_number}: " if line_number is not None else f"{source}: "
        super().__init__(f"{location}{message}")


class CollaboratorFailureError(MutscanError):
    """An external tool (aligner, interval join) exited abnormally for one mutant."""

    def __init__(self, mutant_id: str, tool: str, message: str, returncode: Optional[int] = None):
        self.mutant_id = mutant_id
        self.tool = tool
        self.returncode = returncode
        detail = f" (exit code {returncode})" if returncode is not None else ""
        super().__init__(f"{tool} failed for mutant '{mutant_id}'{detail}: {message}")


class MergeOrderingViolation(MutscanError):
    """Rows reached the merger out of the order it requires."""
    pass
