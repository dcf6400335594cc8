"""
Shared fixtures: a small crossmatch file against one consensus and a
FASTA genome holding the regions its rows point at.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# Row 1: forward hit, query 3..21 of chr1:11-40, one deletion vs the consensus
# Row 2: complement hit, query 5..25 of chr2:1-40, one insertion vs the consensus
CROSSMATCH_TEXT = """\
250 5.00 5.00 0.00 chr1:11-40 3 21 (19) TestRep 1 20 (5) 1

  chr1:11-40           3 ACGTACGTAC-TACGTACGT 21
                                  -
  TestRep              1 ACGTACGTACGTACGTACGT 20

Transitions / transversions = 1.00 (1/1)
Gap_init rate = 0.05 (1 / 19), avg. gap size = 1.00 (1 / 1)

300 2.00 0.00 5.00 chr2:1-40 5 25 (15) C TestRep (0) 25 6 2

  chr2:1-40            5 AACCGGTTTAACCGGTTAACC 25
                                 -
C TestRep             25 AACCGGTT-AACCGGTTAACC 6

Transitions / transversions = 0.00 (0/0)
Gap_init rate = 0.05 (1 / 20), avg. gap size = 1.00 (1 / 1)
"""

GENOME_TEXT = """\
>chr1
AAAAACCCCCGGGGGTTTTTAAAAACCCCCGGGGGTTTTTAAAAACCCCCGGGGGTTTTT
>chr2
ACGTTGCAACACGTTGCAACACGTTGCAACACGTTGCAACACGTTGCAAC
"""


@pytest.fixture
def crossmatch_file(tmp_path):
    """Crossmatch alignments of two genomic regions to TestRep"""
    path = tmp_path / "family.align"
    path.write_text(CROSSMATCH_TEXT)
    return str(path)


@pytest.fixture
def genome_fasta(tmp_path):
    """FASTA genome with chr1 (60 bp) and chr2 (50 bp)"""
    path = tmp_path / "genome.fa"
    path.write_text(GENOME_TEXT)
    return str(path)
