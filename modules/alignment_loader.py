"""
Alignment Loader Module

Detects the format of an input file and builds an Alignment from it.

Flanking is only defined for crossmatch-derived alignments: the other
formats carry no local start/end of the aligned residues within the
genomic region, so asking for flanks on them is rejected up front.
"""

import logging
from typing import Optional

from utils.parsers import (
    FORMAT_CROSSMATCH,
    FORMAT_MSA_FASTA,
    FORMAT_SERIALIZED,
    FORMAT_STOCKHOLM,
    FORMAT_UNKNOWN,
    detect_file_format,
)
from .alignment_model import Alignment, AlignmentFormatError

logger = logging.getLogger(__name__)

_READERS = {
    FORMAT_CROSSMATCH: Alignment.from_crossmatch,
    FORMAT_STOCKHOLM: Alignment.from_stockholm,
    FORMAT_MSA_FASTA: Alignment.from_fasta,
    FORMAT_SERIALIZED: Alignment.from_json,
}


class UnsupportedFlankingError(AlignmentFormatError):
    """Raised when flanking is requested for an input format that can't support it."""


def check_input_format(input_path: str, flanking: bool = False) -> str:
    """
    Classify an input file and make sure the requested run can use it.

    Args:
        input_path: Path to the alignment file
        flanking: Whether flanking sequence will be added

    Returns:
        Format string from detect_file_format()

    Raises:
        AlignmentFormatError: If the format is unknown
        UnsupportedFlankingError: If flanking was requested on a non-crossmatch input
    """
    file_format = detect_file_format(input_path)
    if file_format == FORMAT_UNKNOWN:
        raise AlignmentFormatError(f"Could not determine the alignment format of {input_path}")
    if flanking and file_format != FORMAT_CROSSMATCH:
        raise UnsupportedFlankingError(
            f"Flanking sequence is currently only supported for crossmatch input; "
            f"{input_path} looks like {file_format}"
        )
    return file_format


def load_alignment(input_path: str, flanking: bool = False,
                   file_format: Optional[str] = None) -> Alignment:
    """Read input_path into an Alignment, detecting its format unless file_format is given."""
    if file_format is None:
        file_format = check_input_format(input_path, flanking=flanking)
    logger.info("Reading %s as %s", input_path, file_format)

    alignment = _READERS[file_format](input_path)
    logger.info("Loaded %d rows spanning %d columns", len(alignment), alignment.width)
    return alignment
