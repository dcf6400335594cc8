#!/usr/bin/env python3
"""
Convert repeat family alignments between formats, optionally adding
genomic flanking sequence to every row.

Usage:
    msa-flanker family.align -o family.stk
    msa-flanker family.align -msa -o family.fa
    msa-flanker family.align -msa -genome hg38.2bit -includeFlanking 50 -o family_flanked.fa
    msa-flanker family.stk -dump -o family.json

Exit status: 0 on success, 1 when the run fails, 2 on usage errors.
"""

import argparse
import logging
import sys
from typing import List, Optional

from utils.genome_store import GenomeStoreError, open_genome_store
from utils.parsers import CoordinateParseError
from .alignment_loader import check_input_format, load_alignment
from .alignment_model import AlignmentFormatError
from .flank_extractor import (
    FetchIntegrityError,
    FlankExtractor,
    assemble_flanked_rows,
    fetch_flank_sequences,
    save_flank_windows_to_csv,
    write_flanked_fasta,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="msa-flanker",
        description="Convert repeat family alignments and add genomic flanking sequence",
    )
    parser.add_argument(
        "input",
        help="Alignment file (crossmatch, Stockholm, MSA-FASTA or JSON dump)",
    )
    parser.add_argument(
        "-o", "--output", required=True,
        help="Output file",
    )
    output_mode = parser.add_mutually_exclusive_group()
    output_mode.add_argument(
        "-msa", "--msa", action="store_true",
        help="Write a padded MSA-FASTA (required for flanking)",
    )
    output_mode.add_argument(
        "-dump", "--dump", action="store_true",
        help="Write a JSON dump that can be read back later",
    )
    parser.add_argument(
        "-genome", "--genome",
        help="Genome sequence store (.2bit, or FASTA) for flanking sequence",
    )
    parser.add_argument(
        "-includeFlanking", "--include-flanking", dest="include_flanking",
        type=int, default=0, metavar="N",
        help="Add N bases of genomic flank on both sides of every row (default: 0)",
    )
    parser.add_argument(
        "-twoBitTools", "--twobit-tools", dest="tool_dir",
        help="Directory containing twoBitInfo and twoBitToFa (default: PATH)",
    )
    parser.add_argument(
        "-windowsCSV", "--windows-csv", dest="windows_csv",
        help="Also save the planned flank windows to this CSV file",
    )
    parser.add_argument(
        "-revcomp", "--revcomp", action="store_true",
        help="Reverse-complement the whole alignment before output",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log debug messages",
    )
    return parser


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject flag combinations that can't work together."""
    if args.include_flanking < 0:
        parser.error("-includeFlanking must be >= 0")
    if args.include_flanking > 0 and not (args.genome and args.msa):
        parser.error("-includeFlanking requires both -genome and -msa")
    if args.windows_csv and args.include_flanking == 0:
        parser.error("-windowsCSV is only meaningful together with -includeFlanking")


def run_flanking(args: argparse.Namespace, alignment) -> None:
    store = open_genome_store(args.genome, tool_dir=args.tool_dir)
    try:
        extractor = FlankExtractor(store, args.include_flanking)
        windows = extractor.plan_windows(alignment)
        sequences = fetch_flank_sequences(store, windows)
        rows = assemble_flanked_rows(alignment, windows, sequences,
                                     extractor.flank_left, extractor.flank_right)
    finally:
        store.close()
    if args.windows_csv:
        save_flank_windows_to_csv(windows, alignment, args.windows_csv)
    write_flanked_fasta(rows, args.output)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(parser, args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    flanking = args.include_flanking > 0
    try:
        file_format = check_input_format(args.input, flanking=flanking)
    except AlignmentFormatError as e:
        parser.error(str(e))
    except OSError as e:
        parser.error(f"Cannot read {args.input}: {e}")

    try:
        alignment = load_alignment(args.input, flanking=flanking, file_format=file_format)
        if args.revcomp:
            alignment.reverse_complement()

        if flanking:
            run_flanking(args, alignment)
        elif args.msa:
            alignment.write_fasta(args.output)
        elif args.dump:
            alignment.to_json(args.output)
        else:
            alignment.write_stockholm(args.output)
    except (AlignmentFormatError, CoordinateParseError, GenomeStoreError, FetchIntegrityError) as e:
        logger.error("%s", e)
        return 1

    logger.info("Wrote %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
