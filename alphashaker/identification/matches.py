"""Identification match model.

Matches form a DAG resolved by key lookup through the identification store:

    ProteinMatch ──peptide keys──▶ PeptideMatch ──spectrum keys──▶ SpectrumMatch

No match holds a reference to another match, only keys.

Key conventions
---------------
- Spectrum: ``"<spectrum file>_cus_<spectrum title>"``
- Peptide: sequence, followed by the sorted variable modification names,
  joined by ``_`` (site independent)
- Protein group: sorted accessions joined by a space

Examples
--------
>>> peptide = Peptide("PEPSTIDEK", [ModificationMatch("Phospho", 4)], ["P12345"])
>>> peptide.key
'PEPSTIDEK_Phospho'
>>> protein_key(["P2", "P1"])
'P1 P2'
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..constants import (
    PEPTIDE_KEY_SEPARATOR,
    PROTEIN_KEY_SEPARATOR,
    SPECTRUM_KEY_SEPARATOR,
    UNMODIFIED_FAMILY,
)
from ..exceptions import DuplicateFirstHitError
from .providers import is_decoy_accession


# =============================================================================
# Key Helpers
# =============================================================================

def spectrum_key(spectrum_file: str, spectrum_title: str) -> str:
    return f"{spectrum_file}{SPECTRUM_KEY_SEPARATOR}{spectrum_title}"


def spectrum_file_from_key(key: str) -> str:
    """Return the spectrum file (fraction) a spectrum key belongs to."""
    return key.split(SPECTRUM_KEY_SEPARATOR, 1)[0]


def peptide_sequence_from_key(key: str) -> str:
    return key.split(PEPTIDE_KEY_SEPARATOR, 1)[0]


def is_modified_key(key: str) -> bool:
    return PEPTIDE_KEY_SEPARATOR in key


def modification_family_from_key(key: str) -> str:
    """Return the modification family of a peptide key.

    The family is the ``_``-joined list of distinct variable modifications,
    or ``"unmodified"``.
    """
    parts = key.split(PEPTIDE_KEY_SEPARATOR)[1:]
    if not parts:
        return UNMODIFIED_FAMILY
    return PEPTIDE_KEY_SEPARATOR.join(sorted(set(parts)))


def protein_key(accessions: Iterable[str]) -> str:
    return PROTEIN_KEY_SEPARATOR.join(sorted(set(accessions)))


def accessions_from_key(key: str) -> List[str]:
    return key.split(PROTEIN_KEY_SEPARATOR)


def n_proteins(key: str) -> int:
    return len(accessions_from_key(key))


def is_strict_subgroup(shared_key: str, unique_key: str) -> bool:
    """True if the accessions of ``unique_key`` are a strict subset of ``shared_key``."""
    shared = set(accessions_from_key(shared_key))
    unique = set(accessions_from_key(unique_key))
    return unique < shared


def is_decoy_group(key: str) -> bool:
    """A protein group is a decoy as soon as one of its accessions is."""
    return any(is_decoy_accession(accession) for accession in accessions_from_key(key))


# =============================================================================
# Peptides and Assumptions
# =============================================================================

@dataclass(frozen=True)
class ModificationMatch:
    """A modification on a peptide residue.

    ``site`` is 1-based in the peptide sequence.
    """

    name: str
    site: int
    variable: bool = True

    def __post_init__(self):
        if self.variable and PEPTIDE_KEY_SEPARATOR in self.name:
            raise ValueError(
                f"Variable modification name must not contain "
                f"{PEPTIDE_KEY_SEPARATOR!r}: {self.name}"
            )


class Peptide:
    """Peptide sequence with modifications and parent proteins."""

    def __init__(
        self,
        sequence: str,
        modification_matches: Optional[List[ModificationMatch]] = None,
        parent_proteins: Optional[List[str]] = None,
    ):
        self.sequence = sequence
        self.modification_matches = list(modification_matches or [])
        self.parent_proteins = list(parent_proteins or [])

    @property
    def key(self) -> str:
        names = sorted(m.name for m in self.modification_matches if m.variable)
        if not names:
            return self.sequence
        return PEPTIDE_KEY_SEPARATOR.join([self.sequence] + names)

    @property
    def modification_family(self) -> str:
        return modification_family_from_key(self.key)

    def is_modified(self) -> bool:
        return any(m.variable for m in self.modification_matches)

    def is_decoy(self) -> bool:
        return any(is_decoy_accession(accession) for accession in self.parent_proteins)

    def variable_modification_sites(self) -> Dict[str, List[int]]:
        """Return modification name → sorted 1-based sites of variable modifications."""
        sites: Dict[str, List[int]] = {}
        for modification in self.modification_matches:
            if modification.variable:
                sites.setdefault(modification.name, []).append(modification.site)
        return {name: sorted(positions) for name, positions in sites.items()}

    def __repr__(self) -> str:
        mods = ",".join(f"{m.name}@{m.site}" for m in self.modification_matches)
        return f"Peptide({self.sequence!r}, [{mods}])"


@dataclass
class PeptideAssumption:
    """One advocate's candidate peptide for a spectrum.

    Attributes
    ----------
    advocate : int
        Search engine identifier
    rank : int
        Rank of the candidate for this advocate (1 = first hit)
    peptide : Peptide
        Candidate peptide
    charge : int
        Identification charge
    score : float
        Raw engine score, lower is better (e-value like)
    search_engine_probability : float, optional
        Calibrated probability attached by the aggregator
    """

    advocate: int
    rank: int
    peptide: Peptide
    charge: int
    score: float
    search_engine_probability: Optional[float] = None


# =============================================================================
# Matches
# =============================================================================

class SpectrumMatch:
    """All assumptions of one spectrum, partitioned by advocate and score."""

    def __init__(self, spectrum_file: str, spectrum_title: str):
        self.spectrum_file = spectrum_file
        self.spectrum_title = spectrum_title
        self.key = spectrum_key(spectrum_file, spectrum_title)
        self._assumptions: Dict[int, Dict[float, List[PeptideAssumption]]] = {}
        self._first_hits: Dict[int, PeptideAssumption] = {}
        self.best_assumption: Optional[PeptideAssumption] = None
        self.ptm_scores = None

    def add_assumption(self, assumption: PeptideAssumption) -> None:
        """Add a candidate.

        Raises
        ------
        DuplicateFirstHitError
            If a rank 1 assumption is already attached for this advocate
        """
        if assumption.rank == 1:
            if assumption.advocate in self._first_hits:
                raise DuplicateFirstHitError(self.key, assumption.advocate)
            self._first_hits[assumption.advocate] = assumption
        by_score = self._assumptions.setdefault(assumption.advocate, {})
        by_score.setdefault(assumption.score, []).append(assumption)

    def advocates(self) -> List[int]:
        return sorted(self._assumptions)

    def get_assumptions(self, advocate: int) -> Dict[float, List[PeptideAssumption]]:
        """Return score → assumptions for one advocate."""
        return self._assumptions.get(advocate, {})

    def get_all_assumptions(self) -> List[PeptideAssumption]:
        result = []
        for advocate in self.advocates():
            by_score = self._assumptions[advocate]
            for score in sorted(by_score):
                result.extend(by_score[score])
        return result

    def get_best_assumptions(self, advocate: int) -> List[PeptideAssumption]:
        """Return the assumptions of ``advocate`` sharing its minimal raw score."""
        by_score = self._assumptions.get(advocate)
        if not by_score:
            return []
        return list(by_score[min(by_score)])

    def get_first_hit(self, advocate: int) -> Optional[PeptideAssumption]:
        return self._first_hits.get(advocate)

    def set_first_hit(self, advocate: int, assumption: PeptideAssumption) -> None:
        """Replace the first hit of an advocate (consensus write back)."""
        self._first_hits[advocate] = assumption

    def __repr__(self) -> str:
        return f"SpectrumMatch({self.key!r}, advocates={self.advocates()})"


class PeptideMatch:
    """A peptide and the keys of the spectra supporting it."""

    def __init__(self, peptide: Peptide):
        self.theoretic_peptide = peptide
        self.key = peptide.key
        self.spectrum_keys: List[str] = []
        self.ptm_scores = None

    def add_spectrum_match(self, key: str) -> None:
        if key not in self.spectrum_keys:
            self.spectrum_keys.append(key)

    @property
    def spectrum_count(self) -> int:
        return len(self.spectrum_keys)

    def is_decoy(self) -> bool:
        return self.theoretic_peptide.is_decoy()

    def __repr__(self) -> str:
        return f"PeptideMatch({self.key!r}, n_spectra={self.spectrum_count})"


class ProteinMatch:
    """A protein group and the keys of the peptides supporting it."""

    def __init__(self, accessions: Iterable[str]):
        self.accessions: Tuple[str, ...] = tuple(sorted(set(accessions)))
        self.key = protein_key(self.accessions)
        self.main_accession = self.accessions[0]
        self.peptide_keys: List[str] = []
        self.ptm_scores = None

    def add_peptide_match(self, key: str) -> None:
        if key not in self.peptide_keys:
            self.peptide_keys.append(key)

    @property
    def n_proteins(self) -> int:
        return len(self.accessions)

    def is_decoy(self) -> bool:
        return is_decoy_group(self.key)

    def __repr__(self) -> str:
        return f"ProteinMatch({self.key!r}, n_peptides={len(self.peptide_keys)})"
