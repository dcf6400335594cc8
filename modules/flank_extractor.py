#!/usr/bin/env python3
"""
Flank Extractor Module

Extends every row of an alignment with the genomic sequence on either side
of it. Row identifiers embed the genomic region (chr1:100-200), rows carry
the local start/end of their aligned residues, and reverse-oriented rows get
reverse-complemented flanks with left and right swapped.

Steps:
1. Translate each row into 0-2 flank windows (1-based, fully closed),
   clamped to the genome start and to the sequence length.
2. Fetch all windows from the genome store in one batch.
3. Pad flanks and aligned cores into rows of identical width.

Typical usage:
    store = open_genome_store("hg38.2bit")
    extractor = FlankExtractor(store, flank_left=50, flank_right=50)
    flanked = extractor.extract(alignment)
    write_flanked_fasta(flanked, "family_flanked.fa")
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd

from utils.genome_store import GenomeRegion, GenomeStore
from utils.parsers import CoordinateParseError, ParsedCoordinate, reverse_complement
from .alignment_model import GAP_CHAR, Alignment

logger = logging.getLogger(__name__)


class FetchIntegrityError(RuntimeError):
    """Raised when fetched sequences can't be matched one-to-one with the requested windows."""


class FlankSide(Enum):
    """Side of the row a flank is attached to, in alignment orientation"""
    LEFT = 'left'
    RIGHT = 'right'


@dataclass(frozen=True)
class FlankWindow:
    """Genomic window for one side of one row (1-based, fully closed, end > start)"""
    row_index: int
    side: FlankSide
    sequence_id: str
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def region(self) -> GenomeRegion:
        """The same window in the store's 0-based half-open addressing."""
        return GenomeRegion(self.sequence_id, self.start - 1, self.end)


@dataclass
class FlankedRow:
    """An alignment row with flanks, every part padded to its fixed width"""
    raw_id: str
    left_flank: str
    padded_core: str
    right_flank: str

    @property
    def sequence(self) -> str:
        return self.left_flank + self.padded_core + self.right_flank

    @property
    def length(self) -> int:
        return len(self.sequence)


# ============================================
# Coordinate Translation
# ============================================

def compute_flank_windows(
    row_index: int,
    coordinate: ParsedCoordinate,
    local_start: int,
    local_end: int,
    reverse: bool,
    sequence_length: int,
    flank_left: int,
    flank_right: int
) -> List[FlankWindow]:
    """
    Compute the left/right genomic flank windows of one row.

    Forward rows take the left flank before the region start and the right
    flank after the region end. Reverse rows read the genome backwards, so
    their left flank lies past the region end and their right flank before
    the region start. Windows are clamped to [1, sequence_length] and dropped
    when fewer than two bases remain.

    Note: the reverse right flank is anchored on local_end while every other
    edge is anchored on local_start.

    Args:
        row_index: Index of the row in the alignment
        coordinate: Genomic region parsed from the row identifier
        local_start: Start of the aligned residues within the row sequence
        local_end: End of the aligned residues within the row sequence
        reverse: Effective orientation of the row
        sequence_length: Length of coordinate.sequence_id in the genome
        flank_left: Bases wanted on the left side
        flank_right: Bases wanted on the right side

    Returns:
        Valid windows, left before right
    """
    start, end = coordinate.start, coordinate.end

    if not reverse:
        left_end = start + local_start - 2
        left_start = max(1, left_end + 1 - flank_left)
        right_start = end + local_start
        right_end = min(sequence_length, right_start - 1 + flank_right)
    else:
        left_start = end - local_start
        left_end = min(sequence_length, left_start - 1 + flank_left)
        right_end = end - local_end + 2
        right_start = max(1, right_end + 1 - flank_right)

    windows = []
    if left_end - left_start > 0:
        windows.append(FlankWindow(row_index, FlankSide.LEFT, coordinate.sequence_id,
                                   left_start, left_end))
    if right_end - right_start > 0:
        windows.append(FlankWindow(row_index, FlankSide.RIGHT, coordinate.sequence_id,
                                   right_start, right_end))
    return windows


# ============================================
# Batch Fetch
# ============================================

def fetch_flank_sequences(store: GenomeStore, windows: List[FlankWindow]) -> List[str]:
    """
    Fetch every window from the genome store in a single request.

    Each returned sequence must carry the name of the region it was
    requested for, in request order.

    Returns:
        Raw sequences, positionally matching `windows`

    Raises:
        FetchIntegrityError: On a count or region name mismatch
    """
    if not windows:
        return []

    regions = [window.region for window in windows]
    fetched = store.fetch(regions)

    if len(fetched) != len(regions):
        raise FetchIntegrityError(
            f"Requested {len(regions)} flank regions but the genome store returned {len(fetched)}"
        )

    sequences = []
    for i, (region, (name, sequence)) in enumerate(zip(regions, fetched)):
        if name != region.name:
            raise FetchIntegrityError(
                f"Flank region {i} out of order: expected {region.name}, got {name}"
            )
        sequences.append(sequence)
    return sequences


# ============================================
# Assembly
# ============================================

def assemble_flanked_rows(
    alignment: Alignment,
    windows: List[FlankWindow],
    sequences: List[str],
    flank_left: int,
    flank_right: int
) -> List[FlankedRow]:
    """
    Combine fetched flanks with the padded alignment rows.

    Flanks of reverse rows are reverse-complemented. Short left flanks are
    padded with gaps on the outside (left), short right flanks on the right,
    and missing flanks become all gaps. Every returned row has length
    flank_left + alignment.width + flank_right.
    """
    if len(windows) != len(sequences):
        raise FetchIntegrityError(
            f"{len(windows)} flank windows but {len(sequences)} sequences"
        )

    left_flanks: Dict[int, str] = {}
    right_flanks: Dict[int, str] = {}

    for window, sequence in zip(windows, sequences):
        row = alignment[window.row_index]
        if row.effective_reverse:
            sequence = reverse_complement(sequence)
        else:
            sequence = sequence.upper()

        if window.side is FlankSide.LEFT:
            left_flanks[window.row_index] = sequence
        else:
            right_flanks[window.row_index] = sequence

    width = alignment.width
    flanked = []
    for i, row in enumerate(alignment):
        flanked.append(FlankedRow(
            raw_id=row.raw_id,
            left_flank=left_flanks.get(i, '').rjust(flank_left, GAP_CHAR),
            padded_core=row.padded(width),
            right_flank=right_flanks.get(i, '').ljust(flank_right, GAP_CHAR),
        ))
    return flanked


# ============================================
# Extractor
# ============================================

class FlankExtractor:
    """
    Adds genomic flanks to alignment rows using a GenomeStore.

    Attributes:
        store: Genome store used for lengths and sequence retrieval
        flank_left: Bases added before each row
        flank_right: Bases added after each row
    """

    def __init__(self, store: GenomeStore, flank_left: int, flank_right: Optional[int] = None):
        """
        Args:
            store: Genome sequence store
            flank_left: Flank width on the left side
            flank_right: Flank width on the right side (default: same as flank_left)
        """
        if flank_right is None:
            flank_right = flank_left
        if flank_left < 0 or flank_right < 0:
            raise ValueError(f"Flank widths must be >= 0, got {flank_left}/{flank_right}")

        self.store = store
        self.flank_left = flank_left
        self.flank_right = flank_right
        self._lengths: Optional[Dict[str, int]] = None

    @property
    def sequence_lengths(self) -> Dict[str, int]:
        """Genome length index, loaded from the store on first use."""
        if self._lengths is None:
            self._lengths = self.store.lengths()
        return self._lengths

    def plan_windows(self, alignment: Alignment) -> List[FlankWindow]:
        """
        Translate all rows into flank windows.

        Raises:
            CoordinateParseError: If any row identifier lacks genomic coordinates
        """
        for i, row in enumerate(alignment):
            if row.coordinate is None:
                raise CoordinateParseError(
                    f"Row {i} identifier '{row.raw_id}' does not embed genomic coordinates"
                )

        lengths = self.sequence_lengths
        windows: List[FlankWindow] = []
        skipped = 0

        for i, row in enumerate(alignment):
            sequence_length = lengths.get(row.coordinate.sequence_id)
            if sequence_length is None:
                logger.warning("%s: sequence %s not in genome, no flanks added",
                               row.raw_id, row.coordinate.sequence_id)
                skipped += 1
                continue
            windows.extend(compute_flank_windows(
                row_index=i,
                coordinate=row.coordinate,
                local_start=row.local_start,
                local_end=row.local_end,
                reverse=row.effective_reverse,
                sequence_length=sequence_length,
                flank_left=self.flank_left,
                flank_right=self.flank_right,
            ))

        logger.info("Planned %d flank windows for %d rows (%d rows skipped)",
                    len(windows), len(alignment), skipped)
        return windows

    def extract(self, alignment: Alignment) -> List[FlankedRow]:
        """Plan, fetch and assemble flanked rows for the whole alignment."""
        windows = self.plan_windows(alignment)
        sequences = fetch_flank_sequences(self.store, windows)
        return assemble_flanked_rows(alignment, windows, sequences,
                                     self.flank_left, self.flank_right)


# ============================================
# Output
# ============================================

def write_flanked_fasta(rows: List[FlankedRow], output_file: str) -> None:
    """Write one FASTA record per flanked row."""
    with open(output_file, 'w') as f:
        for row in rows:
            f.write(f">{row.raw_id}\n{row.sequence}\n")

    logger.info("Wrote %d flanked sequences to %s", len(rows), output_file)


def flank_windows_to_dataframe(windows: List[FlankWindow], alignment: Alignment) -> pd.DataFrame:
    """
    Convert planned flank windows to a pandas DataFrame.

    Returns:
        DataFrame with one row per window
    """
    data = [
        {
            'row_index': w.row_index,
            'row_id': alignment[w.row_index].raw_id,
            'side': w.side.value,
            'sequence_id': w.sequence_id,
            'start': w.start,
            'end': w.end,
            'length': w.length,
            'reverse': alignment[w.row_index].effective_reverse,
        }
        for w in windows
    ]
    columns = ['row_index', 'row_id', 'side', 'sequence_id', 'start', 'end', 'length', 'reverse']
    return pd.DataFrame(data, columns=columns)


def save_flank_windows_to_csv(windows: List[FlankWindow], alignment: Alignment, output_file: str) -> None:
    """Save planned flank windows to a CSV file."""
    df = flank_windows_to_dataframe(windows, alignment)
    df.to_csv(output_file, index=False)
    logger.info("Saved %d flank windows to %s", len(df), output_file)
