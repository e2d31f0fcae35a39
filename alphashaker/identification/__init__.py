"""Identification data model and external collaborators.

- Match model: spectrum, peptide and protein matches linked by keys
- ``MatchParameter``: per-match probabilities and validation status
- ``IdentificationStore``: key-addressed match storage with explicit commits
- ``SequenceProvider`` / ``SpectrumProvider``: read-only lookups
"""

from .match_parameter import (
    GroupClass,
    MatchParameter,
)
from .matches import (
    ModificationMatch,
    Peptide,
    PeptideAssumption,
    PeptideMatch,
    ProteinMatch,
    SpectrumMatch,
    accessions_from_key,
    is_decoy_group,
    is_modified_key,
    is_strict_subgroup,
    modification_family_from_key,
    n_proteins,
    peptide_sequence_from_key,
    protein_key,
    spectrum_file_from_key,
    spectrum_key,
)
from .providers import (
    SequenceProvider,
    Spectrum,
    SpectrumProvider,
    compute_molecular_weight,
    is_decoy_accession,
)
from .fasta_reader import (
    parse_protein_id,
    read_fasta,
)
from .store import IdentificationStore

__all__ = [
    # Match model
    'ModificationMatch',
    'Peptide',
    'PeptideAssumption',
    'SpectrumMatch',
    'PeptideMatch',
    'ProteinMatch',
    'spectrum_key',
    'spectrum_file_from_key',
    'peptide_sequence_from_key',
    'is_modified_key',
    'modification_family_from_key',
    'protein_key',
    'accessions_from_key',
    'n_proteins',
    'is_strict_subgroup',
    'is_decoy_group',

    # Match parameters
    'MatchParameter',
    'GroupClass',

    # Storage
    'IdentificationStore',

    # Providers
    'SequenceProvider',
    'SpectrumProvider',
    'Spectrum',
    'compute_molecular_weight',
    'is_decoy_accession',
    'read_fasta',
    'parse_protein_id',
]
