"""AlphaShaker - Target/decoy validation of proteomics identifications.

Turns peptide-spectrum matches from one or more search engines into
validated PSMs, peptides and protein groups:

- ``scoring``: target/decoy posterior error probabilities and FDR cutoffs
- ``identification``: match model, identification store, sequence and
  spectrum providers
- ``validation``: consensus selection, hierarchical probability aggregation,
  protein inference and FDR validation
- ``ptm``: modification site localization (delta score, A-score)

Heavy numeric kernels are Numba-compiled.
"""

__version__ = "0.1.0"

from alphashaker import identification
from alphashaker import scoring
from alphashaker import validation
from alphashaker import ptm

__all__ = [
    "identification",
    "scoring",
    "validation",
    "ptm",
]
