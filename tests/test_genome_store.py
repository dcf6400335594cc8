"""
Unit tests for genome_store module

The twoBit tools are replaced by a fake subprocess.run so the tests
don't need the UCSC binaries.
"""

import os
import subprocess
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils import genome_store
from utils.genome_store import (
    FastaGenomeStore,
    GenomeRegion,
    GenomeStoreError,
    TwoBitGenomeStore,
    open_genome_store,
)


@pytest.fixture
def twobit_file(tmp_path):
    path = tmp_path / "genome.2bit"
    path.write_bytes(b"\x1a\x41\x27\x43")
    return str(path)


@pytest.fixture
def fake_twobit_tools(monkeypatch):
    """Patch subprocess.run with stand-ins for twoBitInfo and twoBitToFa."""
    calls = []

    def fake_run(cmd, capture_output=False, text=False, check=False):
        calls.append(cmd)
        tool = os.path.basename(cmd[0])
        if tool == "twoBitInfo":
            return subprocess.CompletedProcess(cmd, 0, stdout="chr1\t1000\nchr2\t500\n", stderr="")
        if tool == "twoBitToFa":
            seq_list = cmd[1].split("=", 1)[1]
            with open(seq_list) as src, open(cmd[3], "w") as out:
                for line in src:
                    name = line.strip()
                    start, end = name.rsplit(":", 1)[1].split("-")
                    out.write(f">{name}\n{'a' * (int(end) - int(start))}\n")
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(genome_store.subprocess, "run", fake_run)
    return calls


class TestGenomeRegion:
    """Tests for GenomeRegion"""

    def test_name_and_length(self):
        region = GenomeRegion("chr1", 93, 103)
        assert region.name == "chr1:93-103"
        assert region.length == 10


class TestTwoBitGenomeStore:
    """Tests for TwoBitGenomeStore with faked tools"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(GenomeStoreError, match="not found"):
            TwoBitGenomeStore(str(tmp_path / "missing.2bit"))

    def test_lengths(self, twobit_file, fake_twobit_tools):
        store = TwoBitGenomeStore(twobit_file)
        assert store.lengths() == {"chr1": 1000, "chr2": 500}
        assert fake_twobit_tools[0] == ["twoBitInfo", twobit_file, "stdout"]

    def test_fetch_single_invocation(self, twobit_file, fake_twobit_tools):
        store = TwoBitGenomeStore(twobit_file)
        regions = [GenomeRegion("chr1", 93, 103), GenomeRegion("chr2", 0, 4),
                   GenomeRegion("chr1", 93, 103)]

        fetched = store.fetch(regions)

        assert len(fake_twobit_tools) == 1
        assert [name for name, _ in fetched] == ["chr1:93-103", "chr2:0-4", "chr1:93-103"]
        assert [len(seq) for _, seq in fetched] == [10, 4, 10]

    def test_fetch_nothing(self, twobit_file, fake_twobit_tools):
        assert TwoBitGenomeStore(twobit_file).fetch([]) == []
        assert fake_twobit_tools == []

    def test_tool_failure(self, twobit_file, monkeypatch):
        def failing_run(cmd, **kwargs):
            raise subprocess.CalledProcessError(255, cmd, stderr="can't open genome\n")

        monkeypatch.setattr(genome_store.subprocess, "run", failing_run)
        with pytest.raises(GenomeStoreError, match="can't open genome"):
            TwoBitGenomeStore(twobit_file).lengths()

    def test_tool_missing(self, twobit_file, fake_twobit_tools):
        store = TwoBitGenomeStore(twobit_file, twobitinfo_bin="no_such_tool")
        with pytest.raises(GenomeStoreError, match="no_such_tool not found"):
            store.lengths()


class TestFastaGenomeStore:
    """Tests for FastaGenomeStore"""

    def test_lengths(self, genome_fasta):
        store = FastaGenomeStore(genome_fasta)
        try:
            assert store.lengths() == {"chr1": 60, "chr2": 50}
        finally:
            store.close()

    def test_lengths_without_loading_records(self, tmp_path, monkeypatch):
        path = tmp_path / "wrapped.fa"
        path.write_text(">chrA assembled\nACGTACGTAC\nACGTA\n>chrB\nGG\n")
        store = FastaGenomeStore(str(path))

        def no_record_access(self, key):
            raise AssertionError(f"record {key} was loaded")

        monkeypatch.setattr(type(store._index), "__getitem__", no_record_access)
        try:
            assert store.lengths() == {"chrA": 15, "chrB": 2}
        finally:
            monkeypatch.undo()
            store.close()

    def test_fetch(self, genome_fasta):
        store = FastaGenomeStore(genome_fasta)
        try:
            fetched = store.fetch([GenomeRegion("chr1", 7, 12), GenomeRegion("chr2", 12, 17)])
        finally:
            store.close()
        assert fetched == [("chr1:7-12", "CCCGG"), ("chr2:12-17", "GTTGC")]

    def test_unknown_sequence(self, genome_fasta):
        store = FastaGenomeStore(genome_fasta)
        try:
            with pytest.raises(GenomeStoreError, match="chrX"):
                store.fetch([GenomeRegion("chrX", 0, 10)])
        finally:
            store.close()


class TestOpenGenomeStore:
    """Tests for open_genome_store"""

    def test_twobit_extension(self, twobit_file):
        assert isinstance(open_genome_store(twobit_file), TwoBitGenomeStore)

    def test_tool_dir(self, twobit_file):
        store = open_genome_store(twobit_file, tool_dir="/opt/kent")
        assert store.twobitinfo_bin == "/opt/kent/twoBitInfo"
        assert store.twobittofa_bin == "/opt/kent/twoBitToFa"

    def test_fasta_fallback(self, genome_fasta):
        store = open_genome_store(genome_fasta)
        try:
            assert isinstance(store, FastaGenomeStore)
        finally:
            store.close()
