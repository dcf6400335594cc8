"""
Parsers Module for MSA Flanker

A collection of parsers for the text formats the converter reads:
- Sequence identifiers with embedded genomic coordinates (chr1:100-200_R)
- Crossmatch / RepeatMasker alignment output (.align, .cm)
- Input format detection (crossmatch, stockholm, msa-fasta, JSON dumps)

Usage:
    from utils.parsers import parse_sequence_id, parse_crossmatch, detect_file_format
"""

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional


# ============================================
# Constants
# ============================================

# Maximum number of lines inspected by detect_file_format()
DEFAULT_SNIFF_LINES = 10000

FORMAT_CROSSMATCH = 'crossmatch'
FORMAT_STOCKHOLM = 'stockholm'
FORMAT_MSA_FASTA = 'msa-fasta'
FORMAT_SERIALIZED = 'serialized-alignment'
FORMAT_UNKNOWN = 'unknown'

# id:start-end or id_start_end, optionally followed by _R / _r for reverse strand
COORDINATE_ID_PATTERNS = (
    re.compile(r'^(?P<id>\S+):(?P<start>\d+)-(?P<end>\d+)(?P<orient>_[rR])?$'),
    re.compile(r'^(?P<id>\S+)_(?P<start>\d+)_(?P<end>\d+)(?P<orient>_[rR])?$'),
)

# score %div %del %ins query start end (left) ...
SCORE_LINE_RE = re.compile(
    r'^\s*(\d+)\s+(\d+\.\d+)\s+(\d+\.\d+)\s+(\d+\.\d+)\s+'
    r'(\S+)\s+(\d+)\s+(\d+)\s+\((\d+)\)\s+(.+)$'
)

# [C] name position ALIGNED-SEQUENCE position
ALIGNMENT_LINE_RE = re.compile(r'^\s*(?:C\s+)?(\S+)\s+(\d+)\s+([A-Za-z\-.]+)\s+(\d+)\s*$')

# Summary lines printed between crossmatch alignments
SCORE_SUMMARY_RE = re.compile(
    r'^\s*(Transitions\s*/\s*transversions|Gap_init rate|Matrix\s*=|Kimura)'
)

STOCKHOLM_HEADER_RE = re.compile(r'^#\s*STOCKHOLM\s+\d')
MSA_SEQUENCE_RE = re.compile(r'^[ACGTURYKMSWBDHVNX\-. ]+$', re.IGNORECASE)
SERIALIZED_MARKER_RE = re.compile(r'"alignCol"\s*:')


# ============================================
# Exceptions
# ============================================

class CoordinateParseError(ValueError):
    """Raised when a sequence identifier carries no recognizable coordinates."""


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class ParsedCoordinate:
    """Genomic location embedded in a sequence identifier (1-based, fully closed)"""
    sequence_id: str
    start: int
    end: int
    reverse: bool = False  # True when the identifier carries a reverse-strand suffix

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class CrossmatchHit:
    """Represents one crossmatch alignment of a genomic region to a consensus"""
    score: int
    divergence: float       # Percent substitutions
    deletions: float        # Percent deleted bases
    insertions: float       # Percent inserted bases
    query_id: str           # Genomic sequence identifier
    query_start: int
    query_end: int
    query_left: int         # Bases remaining past query_end
    orientation: str        # '+' or '-'
    subject_id: str         # Consensus identifier
    subject_start: int      # Always <= subject_end
    subject_end: int
    subject_left: int
    aligned_query: str = ''
    aligned_subject: str = ''

    @property
    def is_forward(self) -> bool:
        return self.orientation == '+'

    @property
    def length(self) -> int:
        return self.query_end - self.query_start + 1


# ============================================
# Coordinate Identifiers
# ============================================

def parse_sequence_id(raw_id: str) -> ParsedCoordinate:
    """
    Parse genomic coordinates out of a sequence identifier.

    Two layouts are recognized, each with an optional reverse-strand suffix:
        chr1:100-200      chr1:100-200_R
        chr1_100_200      chr1_100_200_r

    Args:
        raw_id: Sequence identifier as it appears in the alignment

    Returns:
        ParsedCoordinate with 1-based, fully closed start/end

    Raises:
        CoordinateParseError: If no pattern matches or start > end
    """
    for pattern in COORDINATE_ID_PATTERNS:
        match = pattern.match(raw_id)
        if match:
            start = int(match.group('start'))
            end = int(match.group('end'))
            if start > end:
                raise CoordinateParseError(
                    f"Start is past end in sequence identifier '{raw_id}'"
                )
            return ParsedCoordinate(
                sequence_id=match.group('id'),
                start=start,
                end=end,
                reverse=match.group('orient') is not None,
            )
    raise CoordinateParseError(
        f"Sequence identifier '{raw_id}' does not embed genomic coordinates "
        f"(expected id:start-end or id_start_end)"
    )


# ============================================
# Crossmatch Parsers
# ============================================

def _parse_score_line(match: 're.Match') -> CrossmatchHit:
    """Build a CrossmatchHit (without aligned sequences) from a score line match."""
    rest = match.group(9).split()

    if rest[0] == 'C':
        # C subject (left) start end -- subject positions run backwards
        orientation = '-'
        subject_id = rest[1]
        subject_left = int(rest[2].strip('()'))
        subject_a, subject_b = int(rest[3]), int(rest[4])
    else:
        orientation = '+'
        if rest[0] == '+':
            rest = rest[1:]
        subject_id = rest[0]
        subject_a, subject_b = int(rest[1]), int(rest[2])
        subject_left = int(rest[3].strip('()'))

    return CrossmatchHit(
        score=int(match.group(1)),
        divergence=float(match.group(2)),
        deletions=float(match.group(3)),
        insertions=float(match.group(4)),
        query_id=match.group(5),
        query_start=int(match.group(6)),
        query_end=int(match.group(7)),
        query_left=int(match.group(8)),
        orientation=orientation,
        subject_id=subject_id,
        subject_start=min(subject_a, subject_b),
        subject_end=max(subject_a, subject_b),
        subject_left=subject_left,
    )


def iter_crossmatch(crossmatch_path: str) -> Iterator[CrossmatchHit]:
    """
    Iterate over alignments in a crossmatch / RepeatMasker .align file.

    Each alignment starts with a score line and is followed by blocks of
    query line, markup line, subject line. Summary lines and markup are
    skipped. Hits without alignment blocks are yielded with empty
    aligned sequences.

    Args:
        crossmatch_path: Path to the crossmatch output

    Yields:
        CrossmatchHit objects in file order
    """
    current: Optional[CrossmatchHit] = None
    query_parts: List[str] = []
    subject_parts: List[str] = []

    with open(crossmatch_path, 'r') as f:
        for line in f:
            line = line.rstrip('\n')
            if not line.strip() or SCORE_SUMMARY_RE.match(line):
                continue

            score_match = SCORE_LINE_RE.match(line)
            if score_match:
                if current is not None:
                    current.aligned_query = ''.join(query_parts)
                    current.aligned_subject = ''.join(subject_parts)
                    yield current
                current = _parse_score_line(score_match)
                query_parts, subject_parts = [], []
                continue

            if current is None:
                continue

            align_match = ALIGNMENT_LINE_RE.match(line)
            if align_match:
                # Query and subject lines alternate within each block
                if len(query_parts) == len(subject_parts):
                    query_parts.append(align_match.group(3))
                else:
                    subject_parts.append(align_match.group(3))

    if current is not None:
        current.aligned_query = ''.join(query_parts)
        current.aligned_subject = ''.join(subject_parts)
        yield current


def parse_crossmatch(crossmatch_path: str) -> List[CrossmatchHit]:
    """Parse all alignments from a crossmatch file into a list."""
    return list(iter_crossmatch(crossmatch_path))


# ============================================
# Sequence Utilities
# ============================================

_COMPLEMENT = str.maketrans(
    'ACGTRYKMSWBDHVNX-. ',
    'TGCAYRMKSWVHDBNX-. ',
)


def reverse_complement(sequence: str) -> str:
    """
    Return the uppercase reverse complement of a DNA sequence.

    IUPAC ambiguity codes map to their complements (R<->Y, K<->M, B<->V,
    D<->H; S, W, N, X are self-complementary). Gap and padding characters
    are kept as they are, so applying the function twice returns the
    uppercased input.

    Args:
        sequence: DNA sequence string, gaps allowed

    Returns:
        Reverse complement sequence
    """
    return sequence.upper().translate(_COMPLEMENT)[::-1]


# ============================================
# Format Detection
# ============================================

def detect_file_format(file_path: str, max_lines: int = DEFAULT_SNIFF_LINES) -> str:
    """
    Detect the alignment format of a file by scanning its first lines.

    Rules are tried in order on every non-blank, non-summary line and the
    first one to match decides:
        1. '# STOCKHOLM 1.0' header          -> 'stockholm'
        2. crossmatch score line             -> 'crossmatch'
        3. sequence line after a '>' header  -> 'msa-fasta'
        4. '"alignCol":' dump key            -> 'serialized-alignment'

    Args:
        file_path: Path to file
        max_lines: Number of lines to inspect before giving up

    Returns:
        Format string, 'unknown' when nothing matched
    """
    seen_header = False

    with open(file_path, 'r') as f:
        for line_number, line in enumerate(f):
            if line_number >= max_lines:
                break
            line = line.rstrip('\r\n')
            if not line.strip() or SCORE_SUMMARY_RE.match(line):
                continue

            if STOCKHOLM_HEADER_RE.match(line):
                return FORMAT_STOCKHOLM
            if SCORE_LINE_RE.match(line):
                return FORMAT_CROSSMATCH
            if line.startswith('>'):
                seen_header = True
                continue
            if seen_header and MSA_SEQUENCE_RE.match(line):
                return FORMAT_MSA_FASTA
            if SERIALIZED_MARKER_RE.search(line):
                return FORMAT_SERIALIZED

    return FORMAT_UNKNOWN
