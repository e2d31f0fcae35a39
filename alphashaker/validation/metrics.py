"""Run-level figures collected while processing identifications."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class Metrics:
    """Maxima and canonical protein ordering for reporting.

    Attributes
    ----------
    protein_keys : List[str]
        Target protein groups in canonical order (score ascending, then
        peptide count and spectrum count descending, then key)
    max_n_peptides : int
        Largest number of peptides of a target protein group
    max_n_spectra : int
        Largest number of spectra of a target protein group
    max_mw : float
        Largest main-accession molecular weight in kDa
    found_modifications : List[str]
        Variable modifications seen in the peptide keys
    n_validated_proteins : int
        Number of validated protein groups
    """

    protein_keys: List[str] = field(default_factory=list)
    max_n_peptides: int = 0
    max_n_spectra: int = 0
    max_mw: float = 0.0
    found_modifications: List[str] = field(default_factory=list)
    n_validated_proteins: int = 0
