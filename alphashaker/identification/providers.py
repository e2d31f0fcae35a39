"""Read-only lookup services consumed by the validation core.

- ``SequenceProvider``: protein sequence and free-text description by accession
- ``SpectrumProvider``: peaks and precursor of a spectrum by spectrum key

Both are scoped to one validation run and never mutated by the core.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from ..constants import (
    AA_AVERAGE_MASSES_DICT,
    AVERAGE_H2O_MASS,
    DECOY_PREFIXES,
    DECOY_SUFFIXES,
)
from .fasta_reader import read_fasta

logger = logging.getLogger(__name__)


def is_decoy_accession(accession: str) -> bool:
    """True if the accession carries a decoy tag (prefix or suffix)."""
    return accession.startswith(DECOY_PREFIXES) or accession.endswith(DECOY_SUFFIXES)


def compute_molecular_weight(sequence: str) -> float:
    """Average molecular weight of a protein sequence in Da.

    Residues without a known mass are ignored.
    """
    if not sequence:
        return 0.0
    return sum(AA_AVERAGE_MASSES_DICT.get(aa, 0.0) for aa in sequence) + AVERAGE_H2O_MASS


class SequenceProvider:
    """In-memory protein lookup.

    Parameters
    ----------
    proteins : List[Tuple[str, str, str]]
        ``(accession, sequence, description)`` tuples, as returned by
        ``read_fasta``
    """

    def __init__(self, proteins: List[Tuple[str, str, str]]):
        self._sequences: Dict[str, str] = {}
        self._descriptions: Dict[str, str] = {}
        for accession, sequence, description in proteins:
            self._sequences[accession] = sequence
            self._descriptions[accession] = description

    @classmethod
    def from_fasta(cls, fasta_path: Union[str, Path]) -> 'SequenceProvider':
        return cls(read_fasta(fasta_path))

    def __contains__(self, accession: str) -> bool:
        return accession in self._sequences

    def __len__(self) -> int:
        return len(self._sequences)

    def get_sequence(self, accession: str) -> str:
        """Return the protein sequence.

        Raises
        ------
        KeyError
            If the accession is not part of the database
        """
        try:
            return self._sequences[accession]
        except KeyError:
            raise KeyError(f"Protein not found: {accession}") from None

    def get_description(self, accession: str) -> Optional[str]:
        """Return the free-text description, None for unknown accessions."""
        return self._descriptions.get(accession)

    def get_molecular_weight(self, accession: str) -> float:
        """Molecular weight in kDa (raises ``KeyError`` for unknown accessions)."""
        return compute_molecular_weight(self.get_sequence(accession)) / 1000

    def is_decoy(self, accession: str) -> bool:
        return is_decoy_accession(accession)


@dataclass
class Spectrum:
    """Centroided MS2 spectrum.

    ``mz`` is sorted ascending, ``intensity`` is parallel to it.
    """

    mz: np.ndarray
    intensity: np.ndarray
    precursor_mz: float = 0.0
    precursor_charge: int = 0

    def __post_init__(self):
        self.mz = np.asarray(self.mz, dtype=np.float64)
        self.intensity = np.asarray(self.intensity, dtype=np.float64)
        if self.mz.shape != self.intensity.shape:
            raise ValueError("mz and intensity arrays must have the same shape")
        order = np.argsort(self.mz, kind="stable")
        self.mz = self.mz[order]
        self.intensity = self.intensity[order]


class SpectrumProvider:
    """In-memory spectrum lookup by spectrum key."""

    def __init__(self, spectra: Optional[Dict[str, Spectrum]] = None):
        self._spectra: Dict[str, Spectrum] = dict(spectra or {})

    def add_spectrum(self, key: str, spectrum: Spectrum) -> None:
        self._spectra[key] = spectrum

    def __contains__(self, key: str) -> bool:
        return key in self._spectra

    def get_spectrum(self, key: str) -> Optional[Spectrum]:
        """Return the spectrum, None when it was not loaded."""
        return self._spectra.get(key)
