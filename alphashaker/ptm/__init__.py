"""PTM site localization.

- ``PtmScoring`` / ``PSPtmScores``: site scores, confidence tiers and sites
- ``AScorer``: binomial A-score over site-determining b/y ions
- ``PtmLocalizationScorer``: spectrum, peptide and protein level scoring
"""

from .scoring import (
    ConfidenceTier,
    PSPtmScores,
    PtmScoring,
)
from .ascore import AScorer, binomial_tail
from .fragments import (
    count_matched_ions,
    encode_peptide_to_ord,
    generate_modified_by_ions,
    select_top_peaks,
)
from .localization import (
    LocalizationScorer,
    PtmLocalizationScorer,
    get_protein_modification_indexes,
)

__all__ = [
    # Scores
    'ConfidenceTier',
    'PtmScoring',
    'PSPtmScores',

    # Localization score
    'AScorer',
    'binomial_tail',
    'LocalizationScorer',

    # Fragment kernels
    'encode_peptide_to_ord',
    'generate_modified_by_ions',
    'select_top_peaks',
    'count_matched_ions',

    # Scoring across levels
    'PtmLocalizationScorer',
    'get_protein_modification_indexes',
]
