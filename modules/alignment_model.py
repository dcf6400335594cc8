"""
Alignment Model Module

In-memory multiple sequence alignment of repeat instances. Each row keeps
only its occupied columns: the aligned string starts at `column_offset`
and leading/trailing spacer padding is not stored.

Readers:   MSA-FASTA, Stockholm, JSON dumps, crossmatch hits
Writers:   padded MSA-FASTA, Stockholm, JSON dumps

Typical usage:
    alignment = Alignment.from_fasta("family.fa")
    alignment.reverse_complement()
    alignment.write_stockholm("family.stk")
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from Bio import AlignIO, SeqIO
from Bio.Align import MultipleSeqAlignment
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from utils.parsers import (
    CoordinateParseError,
    CrossmatchHit,
    ParsedCoordinate,
    parse_crossmatch,
    parse_sequence_id,
    reverse_complement,
)

logger = logging.getLogger(__name__)

GAP_CHAR = '-'
PADDING_CHARS = ' -.'
DUMP_FORMAT = 'msa-flanker-dump'


class AlignmentFormatError(ValueError):
    """Raised when an alignment file is malformed or of an unknown format."""


@dataclass
class AlignedRow:
    """
    One row of the alignment.

    local_start/local_end are positions of the aligned residues within the
    row's own sequence, not genome coordinates. `coordinate` and
    `effective_reverse` are derived once from raw_id and the orientation flag.
    """
    raw_id: str
    aligned_string: str
    column_offset: int = 0
    local_start: int = 1
    local_end: Optional[int] = None
    reverse: bool = False
    coordinate: Optional[ParsedCoordinate] = field(init=False, default=None)
    effective_reverse: bool = field(init=False, default=False)

    def __post_init__(self):
        if self.local_end is None:
            self.local_end = self.local_start + self.residue_count - 1
        try:
            self.coordinate = parse_sequence_id(self.raw_id)
        except CoordinateParseError:
            self.coordinate = None
        self.effective_reverse = self.reverse or (
            self.coordinate is not None and self.coordinate.reverse
        )

    @property
    def residue_count(self) -> int:
        return sum(1 for c in self.aligned_string if c not in PADDING_CHARS)

    @property
    def end_column(self) -> int:
        """First column past this row."""
        return self.column_offset + len(self.aligned_string)

    def padded(self, width: int) -> str:
        """Row text padded with gaps to exactly `width` columns."""
        text = GAP_CHAR * self.column_offset + self.aligned_string
        return text + GAP_CHAR * (width - len(text))


def split_padding(text: str) -> Tuple[int, str]:
    """Split a gapped row into (leading spacer count, core without spacers)."""
    core = text.strip(PADDING_CHARS)
    if not core:
        return 0, ''
    return len(text) - len(text.lstrip(PADDING_CHARS)), core


class Alignment:
    """
    Ordered collection of AlignedRow objects.

    Whole-alignment transforms (reverse_complement) mutate the rows in place
    and must run before any flanking is computed.
    """

    def __init__(self, rows: Optional[List[AlignedRow]] = None, name: Optional[str] = None):
        self.rows: List[AlignedRow] = list(rows or [])
        self.name = name

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[AlignedRow]:
        return iter(self.rows)

    def __getitem__(self, index: int) -> AlignedRow:
        return self.rows[index]

    @property
    def width(self) -> int:
        """Greatest column_offset + len(aligned_string) over all rows."""
        return max((row.end_column for row in self.rows), default=0)

    def padded_rows(self) -> List[Tuple[str, str]]:
        """(raw_id, row padded to the alignment width) for every row."""
        width = self.width
        return [(row.raw_id, row.padded(width)) for row in self.rows]

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def reverse_complement(self) -> None:
        """Reverse-complement every row in place and flip its orientation flag."""
        width = self.width
        self.rows = [
            replace(
                row,
                aligned_string=reverse_complement(row.aligned_string),
                column_offset=width - row.end_column,
                reverse=not row.reverse,
            )
            for row in self.rows
        ]

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @classmethod
    def from_fasta(cls, fasta_path: str) -> 'Alignment':
        """Read an aligned (gapped) FASTA file."""
        rows = []
        for record in SeqIO.parse(fasta_path, "fasta"):
            offset, core = split_padding(str(record.seq))
            rows.append(AlignedRow(raw_id=record.id, aligned_string=core.upper(),
                                   column_offset=offset))
        if not rows:
            raise AlignmentFormatError(f"No sequences found in {fasta_path}")
        return cls(rows)

    @classmethod
    def from_stockholm(cls, stockholm_path: str) -> 'Alignment':
        """Read the first alignment of a Stockholm file."""
        try:
            msa = AlignIO.read(stockholm_path, "stockholm")
        except ValueError as e:
            raise AlignmentFormatError(f"Invalid Stockholm file {stockholm_path}: {e}") from e

        rows = []
        for record in msa:
            offset, core = split_padding(str(record.seq))
            rows.append(AlignedRow(
                raw_id=record.id,
                aligned_string=core.upper(),
                column_offset=offset,
                local_start=record.annotations.get("start", 1),
            ))
        return cls(rows)

    @classmethod
    def from_json(cls, json_path: str) -> 'Alignment':
        """Read an alignment written by to_json()."""
        with open(json_path, "r") as fh:
            try:
                data = json.load(fh)
            except json.JSONDecodeError as e:
                raise AlignmentFormatError(f"Invalid alignment dump {json_path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("rows"), list):
            raise AlignmentFormatError(f"Expected an object with a 'rows' array in {json_path}")

        try:
            rows = [
                AlignedRow(
                    raw_id=entry["id"],
                    aligned_string=entry["seq"],
                    column_offset=int(entry["alignCol"]),
                    local_start=int(entry.get("localStart", 1)),
                    local_end=entry.get("localEnd"),
                    reverse=bool(entry.get("reverse", False)),
                )
                for entry in data["rows"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise AlignmentFormatError(f"Malformed row in {json_path}: {e}") from e
        return cls(rows, name=data.get("name"))

    @classmethod
    def from_crossmatch_hits(cls, hits: List[CrossmatchHit]) -> 'Alignment':
        """
        Project crossmatch hits against one consensus onto consensus columns.

        Column i of the result is consensus position i + 1. Genome bases
        opposite a consensus gap are dropped. Complement hits are flipped
        into consensus orientation and flagged reverse.
        """
        if not hits:
            raise AlignmentFormatError("No crossmatch alignments to build from")

        consensus_id = hits[0].subject_id
        others = sorted({hit.subject_id for hit in hits} - {consensus_id})
        if others:
            logger.warning("Keeping hits to %s only, skipping %d other consensus id(s): %s",
                           consensus_id, len(others), ", ".join(others))

        rows = []
        for hit in hits:
            if hit.subject_id != consensus_id:
                continue
            query, subject = hit.aligned_query, hit.aligned_subject
            if not query or len(query) != len(subject):
                raise AlignmentFormatError(
                    f"Crossmatch hit {hit.query_id}:{hit.query_start}-{hit.query_end} "
                    f"has no usable alignment text"
                )
            if not hit.is_forward:
                query, subject = reverse_complement(query), reverse_complement(subject)

            projected = ''.join(q for q, s in zip(query, subject) if s != GAP_CHAR)
            rows.append(AlignedRow(
                raw_id=hit.query_id,
                aligned_string=projected.upper(),
                column_offset=hit.subject_start - 1,
                local_start=hit.query_start,
                local_end=hit.query_end,
                reverse=not hit.is_forward,
            ))
        return cls(rows, name=consensus_id)

    @classmethod
    def from_crossmatch(cls, crossmatch_path: str) -> 'Alignment':
        return cls.from_crossmatch_hits(parse_crossmatch(crossmatch_path))

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict:
        return {
            "format": DUMP_FORMAT,
            "name": self.name,
            "rows": [
                {
                    "id": row.raw_id,
                    "alignCol": row.column_offset,
                    "seq": row.aligned_string,
                    "localStart": row.local_start,
                    "localEnd": row.local_end,
                    "reverse": row.reverse,
                }
                for row in self.rows
            ],
        }

    def to_json(self, json_path: str) -> None:
        with open(json_path, "w") as fh:
            json.dump(self.to_dict(), fh, indent=2)
            fh.write("\n")

    def write_fasta(self, fasta_path: str) -> None:
        """Write every row padded to the alignment width."""
        with open(fasta_path, "w") as f:
            for raw_id, text in self.padded_rows():
                f.write(f">{raw_id}\n{text}\n")

    def to_multiple_seq_alignment(self) -> MultipleSeqAlignment:
        return MultipleSeqAlignment(
            [SeqRecord(Seq(text), id=raw_id, description="") for raw_id, text in self.padded_rows()]
        )

    def write_stockholm(self, stockholm_path: str) -> None:
        AlignIO.write(self.to_multiple_seq_alignment(), stockholm_path, "stockholm")
