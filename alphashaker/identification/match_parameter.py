"""Per-match validation record.

One ``MatchParameter`` exists per spectrum, peptide and protein key. It is
owned by the identification store and fully rewritten by every aggregation
pass that reads the corresponding map, so it is never partially stale.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List


class GroupClass(IntEnum):
    """Protein inference classification of a protein group or peptide."""
    NOT_GROUP = 0
    ISOFORMS = 1
    ISOFORMS_UNRELATED = 2
    UNRELATED = 3


@dataclass
class MatchParameter:
    """Probabilities and validation status of one match.

    Attributes
    ----------
    probability_score : float
        Raw probability score (product model input of the level map)
    probability : float
        Posterior error probability read back from the level map
    specific_map_key : str
        Subgroup of the level map the match was added to
    validated : bool
        Validation flag set by the validation engine
    group_class : GroupClass
        Protein inference classification
    fraction_scores : Dict[str, float]
        Raw probability score restricted to each fraction
    fraction_pep : Dict[str, float]
        Posterior error probability of each fraction score
    """

    probability_score: float = 1.0
    probability: float = 1.0
    specific_map_key: str = ""
    validated: bool = False
    group_class: GroupClass = GroupClass.NOT_GROUP
    fraction_scores: Dict[str, float] = field(default_factory=dict)
    fraction_pep: Dict[str, float] = field(default_factory=dict)

    @property
    def confidence(self) -> float:
        """Confidence in percent, 100 * (1 - probability)."""
        return 100.0 * (1.0 - self.probability)

    def fractions(self) -> List[str]:
        return sorted(self.fraction_scores)
