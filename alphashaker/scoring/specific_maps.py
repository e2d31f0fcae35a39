"""Context-specific target/decoy maps.

Observations are partitioned into subgroups, each owning one
``TargetDecoyMap``:

- ``PsmSpecificMap``: by identification charge (optionally charge and
  spectrum file)
- ``PeptideSpecificMap``: by modification family
- ``ProteinMap``: a single global map

Subgroups holding fewer than ``min_group_size`` observations are pooled into
one shared map during ``cure()``; ``get_corrected_key`` resolves a subgroup
key to the map actually used.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..constants import (
    DEFAULT_MIN_GROUP_SIZE,
    DEFAULT_MIN_SUPPORT,
    DEFAULT_SUSPICIOUS_N_MAX,
)
from ..parameters import ValidationParameters
from .target_decoy import TargetDecoyMap

logger = logging.getLogger(__name__)


class SpecificMap:
    """Collection of subgroup ``TargetDecoyMap`` objects with pooling."""

    pooled_key = "pooled"

    def __init__(
        self,
        min_support: int = DEFAULT_MIN_SUPPORT,
        suspicious_n_max: int = DEFAULT_SUSPICIOUS_N_MAX,
        min_group_size: int = DEFAULT_MIN_GROUP_SIZE,
    ):
        self.min_support = min_support
        self.suspicious_n_max = suspicious_n_max
        self.min_group_size = min_group_size
        self._maps: Dict[str, TargetDecoyMap] = {}
        self._observations: Dict[str, List[Tuple[float, bool]]] = {}
        self._grouped: Dict[str, str] = {}
        self._pooled: Optional[TargetDecoyMap] = None

    @classmethod
    def from_parameters(cls, parameters: ValidationParameters, **kwargs):
        return cls(
            min_support=parameters.min_support,
            suspicious_n_max=parameters.suspicious_n_max,
            min_group_size=parameters.min_group_size,
            **kwargs,
        )

    def _new_map(self) -> TargetDecoyMap:
        return TargetDecoyMap(self.min_support, self.suspicious_n_max)

    def add_point(self, key: str, score: float, is_decoy: bool) -> None:
        if key not in self._maps:
            self._maps[key] = self._new_map()
            self._observations[key] = []
        self._maps[key].add_point(score, is_decoy)
        self._observations[key].append((score, is_decoy))
        if key in self._grouped:
            self._pooled.add_point(score, is_decoy)

    def remove_point(self, key: str, score: float, is_decoy: bool) -> None:
        if key not in self._maps:
            raise KeyError(f"Unknown map key: {key}")
        self._maps[key].remove_point(score, is_decoy)
        self._observations[key].remove((score, is_decoy))
        if key in self._grouped:
            self._pooled.remove_point(score, is_decoy)

    def keys(self) -> List[str]:
        """Subgroup keys as added, in sorted order."""
        return sorted(self._maps)

    def corrected_keys(self) -> List[str]:
        """Keys of the maps actually used after pooling."""
        keys = [key for key in self.keys() if key not in self._grouped]
        if self._pooled is not None:
            keys.append(self.pooled_key)
        return keys

    def get_corrected_key(self, key: str) -> str:
        return self._grouped.get(key, key)

    def get_target_decoy_map(self, key: str) -> TargetDecoyMap:
        """Return the map used for a (possibly pooled) subgroup key."""
        corrected = self.get_corrected_key(key)
        if corrected == self.pooled_key and self._pooled is not None:
            return self._pooled
        try:
            return self._maps[corrected]
        except KeyError:
            raise KeyError(f"Unknown map key: {key}") from None

    def cure(self) -> None:
        """Pool small subgroups, then cure every map."""
        self._grouped = {}
        self._pooled = None
        small = [key for key in self.keys() if len(self._maps[key]) < self.min_group_size]
        if len(small) > 1:
            self._pooled = self._new_map()
            for key in small:
                self._grouped[key] = self.pooled_key
                for score, is_decoy in self._observations[key]:
                    self._pooled.add_point(score, is_decoy)
            logger.info(f"Pooled {len(small)} small subgroups: {', '.join(small)}")
        for key in self.corrected_keys():
            self.get_target_decoy_map(key).cure()

    def estimate_probabilities(self, waiting_handler=None) -> None:
        for key in self.corrected_keys():
            if waiting_handler is not None and waiting_handler.is_run_canceled():
                return
            self.get_target_decoy_map(key).estimate_probabilities()

    def get_probability(self, key: str, score: float) -> float:
        return self.get_target_decoy_map(key).get_probability(score)

    def suspicious_input(self) -> List[str]:
        """Corrected keys of the maps flagged as suspicious."""
        return [
            key for key in self.corrected_keys()
            if self.get_target_decoy_map(key).suspicious_input()
        ]

    def __len__(self) -> int:
        return sum(len(m) for m in self._maps.values())


class PsmSpecificMap(SpecificMap):
    """PSM maps keyed by identification charge, optionally per spectrum file."""

    def __init__(self, *args, separate_fractions: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.separate_fractions = separate_fractions

    @classmethod
    def from_parameters(cls, parameters: ValidationParameters, **kwargs):
        return super().from_parameters(
            parameters, separate_fractions=parameters.separate_fractions, **kwargs
        )

    def get_key(self, charge: int, fraction: str) -> str:
        if self.separate_fractions:
            return f"{charge}_{fraction}"
        return str(charge)


class PeptideSpecificMap(SpecificMap):
    """Peptide maps keyed by modification family."""

    pooled_key = "other"

    def get_key(self, modification_family: str) -> str:
        return modification_family


class ProteinMap:
    """Single global protein target/decoy map."""

    def __init__(
        self,
        min_support: int = DEFAULT_MIN_SUPPORT,
        suspicious_n_max: int = DEFAULT_SUSPICIOUS_N_MAX,
    ):
        self._map = TargetDecoyMap(min_support, suspicious_n_max)

    @classmethod
    def from_parameters(cls, parameters: ValidationParameters) -> 'ProteinMap':
        return cls(parameters.min_support, parameters.suspicious_n_max)

    def add_point(self, score: float, is_decoy: bool) -> None:
        self._map.add_point(score, is_decoy)

    def remove_point(self, score: float, is_decoy: bool) -> None:
        self._map.remove_point(score, is_decoy)

    def cure(self) -> None:
        self._map.cure()

    def estimate_probabilities(self, waiting_handler=None) -> None:
        self._map.estimate_probabilities()

    def get_probability(self, score: float) -> float:
        return self._map.get_probability(score)

    def get_target_decoy_map(self) -> TargetDecoyMap:
        return self._map

    def suspicious_input(self) -> bool:
        return self._map.suspicious_input()

    def __len__(self) -> int:
        return len(self._map)
