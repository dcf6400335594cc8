# MSA Flanker Modules

from .alignment_model import (
    AlignedRow,
    Alignment,
    AlignmentFormatError,
)
from .alignment_loader import (
    UnsupportedFlankingError,
    check_input_format,
    load_alignment,
)
from .flank_extractor import (
    FlankExtractor,
    FlankWindow,
    FlankedRow,
    FlankSide,
    FetchIntegrityError,
    compute_flank_windows,
    fetch_flank_sequences,
    assemble_flanked_rows,
    write_flanked_fasta,
    save_flank_windows_to_csv,
)
