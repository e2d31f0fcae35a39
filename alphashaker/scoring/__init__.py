"""Target/decoy statistics.

- ``TargetDecoyMap``: histogram-based posterior error probability and FDR
  cutoff estimation
- ``PsmSpecificMap`` / ``PeptideSpecificMap`` / ``ProteinMap``: subgroup
  partitioning of observations per identification level
- ``InputMap``: per search engine probabilities over raw scores

Examples
--------
>>> from alphashaker.scoring import TargetDecoyMap
>>>
>>> tdm = TargetDecoyMap(min_support=1)
>>> tdm.add_point(0.001, is_decoy=False)
>>> tdm.add_point(0.5, is_decoy=True)
>>> tdm.estimate_probabilities()
>>> tdm.get_probability(0.001)
0.0
"""

from .target_decoy import TargetDecoyMap
from .specific_maps import (
    PeptideSpecificMap,
    ProteinMap,
    PsmSpecificMap,
    SpecificMap,
)
from .input_map import InputMap

__all__ = [
    "TargetDecoyMap",
    "SpecificMap",
    "PsmSpecificMap",
    "PeptideSpecificMap",
    "ProteinMap",
    "InputMap",
]
