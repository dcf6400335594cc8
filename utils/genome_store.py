"""
Genome Store Module

Random access to an indexed genome for two operations:
1. lengths()  -> {sequence_id: length}
2. fetch()    -> one raw sequence per requested region, in request order

Regions use the store's native half-open, 0-based addressing
[start0, end). Two backends are provided:

    TwoBitGenomeStore  - UCSC .2bit files via the twoBitInfo / twoBitToFa tools
    FastaGenomeStore   - (multi-)FASTA files via Biopython's SeqIO.index

Typical usage:
    store = open_genome_store("hg38.2bit")
    lengths = store.lengths()
    fetched = store.fetch([GenomeRegion("chr1", 93, 103)])
"""

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from Bio import SeqIO
from Bio.SeqIO.FastaIO import SimpleFastaParser

logger = logging.getLogger(__name__)

TWOBITINFO_BIN = "twoBitInfo"
TWOBITTOFA_BIN = "twoBitToFa"


class GenomeStoreError(RuntimeError):
    """Raised when the genome store cannot be read or its tools fail."""


@dataclass(frozen=True)
class GenomeRegion:
    """A region to fetch, 0-based half-open"""
    sequence_id: str
    start: int  # 0-based, inclusive
    end: int    # exclusive

    @property
    def name(self) -> str:
        """Region name as echoed back by twoBitToFa (seq:start-end)."""
        return f"{self.sequence_id}:{self.start}-{self.end}"

    @property
    def length(self) -> int:
        return self.end - self.start


class GenomeStore:
    """
    Interface of a genome sequence store.

    fetch() returns (region_name, sequence) pairs so callers can check that
    every returned sequence belongs to the region they asked for.
    """

    def lengths(self) -> Dict[str, int]:
        raise NotImplementedError

    def fetch(self, regions: List[GenomeRegion]) -> List[Tuple[str, str]]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class TwoBitGenomeStore(GenomeStore):
    """
    Genome store backed by a .2bit file and the UCSC command line tools.

    All regions of one fetch() go through a single twoBitToFa invocation
    using a temporary -seqList file.
    """

    def __init__(
        self,
        twobit_path: str,
        twobitinfo_bin: str = TWOBITINFO_BIN,
        twobittofa_bin: str = TWOBITTOFA_BIN
    ):
        """
        Args:
            twobit_path: Path to the .2bit genome
            twobitinfo_bin: twoBitInfo executable name or path
            twobittofa_bin: twoBitToFa executable name or path

        Raises:
            GenomeStoreError: If the genome file doesn't exist
        """
        self.twobit_path = Path(twobit_path)
        self.twobitinfo_bin = twobitinfo_bin
        self.twobittofa_bin = twobittofa_bin

        if not self.twobit_path.exists():
            raise GenomeStoreError(f"Genome file not found: {twobit_path}")

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        logger.debug("Running: %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise GenomeStoreError(f"{cmd[0]} not found on PATH") from e
        except subprocess.CalledProcessError as e:
            raise GenomeStoreError(f"{cmd[0]} failed: {e.stderr.strip()}") from e

    def lengths(self) -> Dict[str, int]:
        """Run twoBitInfo and return {sequence_id: length}."""
        result = self._run([self.twobitinfo_bin, str(self.twobit_path), "stdout"])

        lengths = {}
        for line in result.stdout.splitlines():
            fields = line.split()
            if len(fields) >= 2:
                lengths[fields[0]] = int(fields[1])

        logger.info("Loaded lengths for %d genome sequences", len(lengths))
        return lengths

    def fetch(self, regions: List[GenomeRegion]) -> List[Tuple[str, str]]:
        """
        Fetch all regions with one twoBitToFa call.

        Returns:
            (region_name, sequence) pairs in the order twoBitToFa wrote them
        """
        if not regions:
            return []

        with tempfile.TemporaryDirectory(prefix="msa_flanker_") as tmp_dir:
            seq_list = os.path.join(tmp_dir, "regions.txt")
            out_fasta = os.path.join(tmp_dir, "regions.fa")

            with open(seq_list, "w") as f:
                for region in regions:
                    f.write(f"{region.name}\n")

            self._run([
                self.twobittofa_bin,
                f"-seqList={seq_list}",
                str(self.twobit_path),
                out_fasta,
            ])

            fetched = [
                (record.id, str(record.seq))
                for record in SeqIO.parse(out_fasta, "fasta")
            ]

        logger.info("Fetched %d/%d regions from %s", len(fetched), len(regions), self.twobit_path)
        return fetched


class FastaGenomeStore(GenomeStore):
    """
    Genome store backed by a FASTA file.

    Uses SeqIO.index so only the records that are actually sliced get read.
    """

    def __init__(self, fasta_path: str):
        """
        Raises:
            GenomeStoreError: If the file doesn't exist
        """
        self.fasta_path = Path(fasta_path)
        if not self.fasta_path.exists():
            raise GenomeStoreError(f"Genome file not found: {fasta_path}")
        self._index = SeqIO.index(str(self.fasta_path), "fasta")

    def close(self) -> None:
        self._index.close()

    def lengths(self) -> Dict[str, int]:
        # One streaming pass; only one record's sequence is held at a time
        lengths = {}
        with open(self.fasta_path, "r") as handle:
            for title, sequence in SimpleFastaParser(handle):
                lengths[title.split(None, 1)[0]] = len(sequence)
        logger.info("Loaded lengths for %d genome sequences", len(lengths))
        return lengths

    def fetch(self, regions: List[GenomeRegion]) -> List[Tuple[str, str]]:
        fetched = []
        for region in regions:
            if region.sequence_id not in self._index:
                raise GenomeStoreError(
                    f"Sequence '{region.sequence_id}' not found in {self.fasta_path}"
                )
            record = self._index[region.sequence_id]
            fetched.append((region.name, str(record.seq[region.start:region.end])))
        return fetched


def open_genome_store(genome_path: str, tool_dir: Optional[str] = None) -> GenomeStore:
    """
    Open the store matching a genome file's extension.

    Args:
        genome_path: .2bit file, or any FASTA file
        tool_dir: Optional directory holding twoBitInfo / twoBitToFa

    Returns:
        A GenomeStore instance
    """
    if Path(genome_path).suffix.lower() == ".2bit":
        if tool_dir:
            return TwoBitGenomeStore(
                genome_path,
                twobitinfo_bin=os.path.join(tool_dir, TWOBITINFO_BIN),
                twobittofa_bin=os.path.join(tool_dir, TWOBITTOFA_BIN),
            )
        return TwoBitGenomeStore(genome_path)
    return FastaGenomeStore(genome_path)
