"""Hierarchical validation of identifications.

- ``PsmConsensusSelector``: best assumption per spectrum across advocates
- ``HierarchicalAggregator``: PSM → peptide → protein probability pipeline
- ``ValidationEngine``: FDR validation flags per level
- ``ProteinGroupResolver``: protein group merging and classification
- ``Metrics``: canonical protein ordering and reporting maxima
"""

from .consensus import ConsensusCandidate, PsmConsensusSelector
from .metrics import Metrics
from .validator import ValidationEngine, ValidationSummary
from .protein_groups import ProteinGroupResolver, get_similarity, parse_description
from .aggregator import HierarchicalAggregator

__all__ = [
    'PsmConsensusSelector',
    'ConsensusCandidate',
    'HierarchicalAggregator',
    'ValidationEngine',
    'ValidationSummary',
    'ProteinGroupResolver',
    'parse_description',
    'get_similarity',
    'Metrics',
]
