# Utility functions for MSA Flanker

from .parsers import (
    # Data classes
    ParsedCoordinate,
    CrossmatchHit,
    CoordinateParseError,
    # Coordinate identifiers
    parse_sequence_id,
    # Crossmatch parsers
    parse_crossmatch,
    iter_crossmatch,
    # Utilities
    reverse_complement,
    detect_file_format,
)

from .genome_store import (
    GenomeRegion,
    GenomeStore,
    GenomeStoreError,
    TwoBitGenomeStore,
    FastaGenomeStore,
    open_genome_store,
)
