"""Configuration objects for a validation run.

Three parameter groups are consumed by the core:

- ``ValidationParameters``: FDR targets and the statistical thresholds of the
  target/decoy maps
- ``SearchParameters``: modification profile and fragment tolerance of the
  search the identifications come from
- ``AnnotationParameters``: fragment ion types and charges used when
  annotating spectra for PTM localization

Examples
--------
>>> params = ValidationParameters(psm_fdr=1.0, peptide_fdr=1.0, protein_fdr=5.0)
>>> search = SearchParameters.default()
>>> search.is_residue_modification("Phospho")
True
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, Tuple

from .constants import (
    ACETYL_MASS,
    CARBAMIDOMETHYL_MASS,
    DEAMIDATION_MASS,
    DEFAULT_FDR,
    DEFAULT_MIN_GROUP_SIZE,
    DEFAULT_MIN_SUPPORT,
    DEFAULT_MS2_TOLERANCE,
    DEFAULT_SUSPICIOUS_N_MAX,
    OXIDATION_MASS,
    PHOSPHO_MASS,
    PEPTIDE_KEY_SEPARATOR,
)


class ModificationType(Enum):
    """Where a modification can be located."""
    AA = "aa"            # specific residue(s) anywhere in the peptide
    N_TERM = "n_term"    # peptide or protein N-terminus
    C_TERM = "c_term"    # peptide or protein C-terminus


@dataclass
class ValidationParameters:
    """Statistical settings of a validation run.

    FDR values are given in percent, as in the reports.
    """

    psm_fdr: float = DEFAULT_FDR
    peptide_fdr: float = DEFAULT_FDR
    protein_fdr: float = DEFAULT_FDR

    # Minimal combined target+decoy count per probability bin
    min_support: int = DEFAULT_MIN_SUPPORT

    # Targets before the first decoy below which a map is suspicious
    suspicious_n_max: int = DEFAULT_SUSPICIOUS_N_MAX

    # Subgroups with fewer observations are pooled
    min_group_size: int = DEFAULT_MIN_GROUP_SIZE

    # Split PSM subgroups by spectrum file in addition to charge
    separate_fractions: bool = False

    # List suspicious subgroups in the final report
    detailed_report: bool = False

    def __post_init__(self):
        for name in ("psm_fdr", "peptide_fdr", "protein_fdr"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ValueError(f"{name} must be a percentage in [0, 100], got {value}")
        if self.min_support < 1:
            raise ValueError(f"min_support must be positive, got {self.min_support}")
        if self.min_group_size < 0:
            raise ValueError(f"min_group_size must be >= 0, got {self.min_group_size}")

    @classmethod
    def strict(cls) -> 'ValidationParameters':
        """Parameters for small data sets: no subgroup pooling, fine bins."""
        return cls(min_support=1, min_group_size=0)

    @classmethod
    def from_dict(cls, config: dict) -> 'ValidationParameters':
        """Create parameters from a (e.g. YAML/JSON loaded) dictionary.

        Unknown keys raise ``ValueError`` so that typos do not pass silently.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown validation parameters: {sorted(unknown)}")
        return cls(**config)


@dataclass
class ModificationProfileEntry:
    """One modification of the search modification profile."""

    mass: float
    residues: Tuple[str, ...] = ()
    mod_type: ModificationType = ModificationType.AA


@dataclass
class SearchParameters:
    """Search settings relevant to validation and PTM localization."""

    fragment_tolerance_ppm: float = DEFAULT_MS2_TOLERANCE
    min_isotopic_correction: int = 0
    max_isotopic_correction: int = 1
    enzyme: str = "Trypsin"
    modification_profile: Dict[str, ModificationProfileEntry] = field(default_factory=dict)

    def __post_init__(self):
        if self.fragment_tolerance_ppm <= 0:
            raise ValueError(
                f"fragment_tolerance_ppm must be positive, got {self.fragment_tolerance_ppm}"
            )
        if self.min_isotopic_correction > self.max_isotopic_correction:
            raise ValueError("min_isotopic_correction exceeds max_isotopic_correction")
        # Peptide keys join modification names with the separator
        for name in self.modification_profile:
            if PEPTIDE_KEY_SEPARATOR in name:
                raise ValueError(
                    f"Modification name must not contain {PEPTIDE_KEY_SEPARATOR!r}: {name}"
                )

    @classmethod
    def default(cls) -> 'SearchParameters':
        """Search parameters carrying the common modifications."""
        return cls(
            modification_profile={
                "Carbamidomethyl": ModificationProfileEntry(CARBAMIDOMETHYL_MASS, ("C",)),
                "Oxidation": ModificationProfileEntry(OXIDATION_MASS, ("M",)),
                "Phospho": ModificationProfileEntry(PHOSPHO_MASS, ("S", "T", "Y")),
                "Deamidation": ModificationProfileEntry(DEAMIDATION_MASS, ("N", "Q")),
                "Acetyl": ModificationProfileEntry(
                    ACETYL_MASS, (), ModificationType.N_TERM
                ),
            }
        )

    def get_modification(self, name: str) -> ModificationProfileEntry:
        """Return the profile entry of a modification.

        Raises
        ------
        KeyError
            If the modification is not part of the profile
        """
        try:
            return self.modification_profile[name]
        except KeyError:
            raise KeyError(f"Modification not in search profile: {name}") from None

    def is_residue_modification(self, name: str) -> bool:
        """True if the modification targets residues (site localizable).

        Modifications absent from the profile are treated as residue
        modifications.
        """
        entry = self.modification_profile.get(name)
        return entry is None or entry.mod_type == ModificationType.AA


@dataclass
class AnnotationParameters:
    """Spectrum annotation settings used by the localization scorer."""

    # Fragment types: 0=b, 1=y
    fragment_types: Tuple[int, ...] = (0, 1)
    fragment_charges: Tuple[int, ...] = (1, 2)

    # Peak picking depth per 100 m/z window for the A-score
    max_peak_depth: int = 10

    # Minimal relative intensity of a peak to be annotated
    min_relative_intensity: float = 0.0

    def __post_init__(self):
        if not self.fragment_types:
            raise ValueError("At least one fragment type is required")
        if any(t not in (0, 1) for t in self.fragment_types):
            raise ValueError(f"Unknown fragment types: {self.fragment_types}")
        if self.max_peak_depth < 1:
            raise ValueError(f"max_peak_depth must be >= 1, got {self.max_peak_depth}")
