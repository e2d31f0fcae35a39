"""Search-engine level probability estimation.

``InputMap`` keeps one ``TargetDecoyMap`` per advocate (search engine) over
the raw scores of the advocate's first hits. It converts raw, engine-specific
scores into calibrated error probabilities that can be combined across
engines.
"""

import logging
from typing import Dict, List

from ..constants import DEFAULT_MIN_SUPPORT, DEFAULT_SUSPICIOUS_N_MAX
from ..parameters import ValidationParameters
from .target_decoy import TargetDecoyMap

logger = logging.getLogger(__name__)


class InputMap:
    """Per-advocate target/decoy maps over raw engine scores."""

    def __init__(
        self,
        min_support: int = DEFAULT_MIN_SUPPORT,
        suspicious_n_max: int = DEFAULT_SUSPICIOUS_N_MAX,
    ):
        self.min_support = min_support
        self.suspicious_n_max = suspicious_n_max
        self._maps: Dict[int, TargetDecoyMap] = {}

    @classmethod
    def from_parameters(cls, parameters: ValidationParameters) -> 'InputMap':
        return cls(parameters.min_support, parameters.suspicious_n_max)

    def add_point(self, advocate: int, score: float, is_decoy: bool) -> None:
        if advocate not in self._maps:
            self._maps[advocate] = TargetDecoyMap(self.min_support, self.suspicious_n_max)
        self._maps[advocate].add_point(score, is_decoy)

    def advocates(self) -> List[int]:
        return sorted(self._maps)

    def is_multiple_search_engines(self) -> bool:
        return len(self._maps) > 1

    def get_target_decoy_map(self, advocate: int) -> TargetDecoyMap:
        return self._maps[advocate]

    def estimate_probabilities(self, waiting_handler=None) -> None:
        """Cure and estimate every advocate map."""
        for advocate in self.advocates():
            if waiting_handler is not None and waiting_handler.is_run_canceled():
                return
            target_decoy_map = self._maps[advocate]
            target_decoy_map.cure()
            target_decoy_map.estimate_probabilities()
            logger.info(
                f"Advocate {advocate}: {target_decoy_map.n_target:,} targets, "
                f"{target_decoy_map.n_decoy:,} decoys"
            )

    def get_probability(self, advocate: int, score: float) -> float:
        """Probability of a raw score; 1.0 for advocates without observations."""
        target_decoy_map = self._maps.get(advocate)
        if target_decoy_map is None:
            return 1.0
        return target_decoy_map.get_probability(score)

    def suspicious_input(self) -> List[int]:
        """Advocates whose map lacks a robust target/decoy separation."""
        return [a for a in self.advocates() if self._maps[a].suspicious_input()]
