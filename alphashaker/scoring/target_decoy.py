"""Target/decoy posterior error probability estimation (NumPy/Numba).

A ``TargetDecoyMap`` collects ``(score, is_decoy)`` observations where a lower
score is better (e-values, probabilities). From them it derives

1. a piecewise-constant posterior error probability (PEP) curve over score
   bins, and
2. a score cutoff at a requested false discovery rate.

Key Features
------------
- ``cure()`` merges sparse neighbouring bins until every bin has enough
  target+decoy support; observations are never discarded
- Monotonic PEP: the probability never decreases as the score worsens
- FDR cutoff evaluated at target scores only, so trailing decoys never open
  the threshold
- Numba-accelerated kernels over sorted score arrays

Examples
--------
>>> tdm = TargetDecoyMap(min_support=10)
>>> for score in target_scores:
...     tdm.add_point(score, is_decoy=False)
>>> for score in decoy_scores:
...     tdm.add_point(score, is_decoy=True)
>>> tdm.cure()
>>> tdm.estimate_probabilities()
>>> pep = tdm.get_probability(1e-5)
>>> cutoff = tdm.get_score_limit(0.01)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import numpy as np
from numba import njit

from ..constants import DEFAULT_MIN_SUPPORT, DEFAULT_SUSPICIOUS_N_MAX

logger = logging.getLogger(__name__)


# =============================================================================
# Numba Kernels
# =============================================================================

@njit
def _cure_bins(
    scores: np.ndarray, n_target: np.ndarray, n_decoy: np.ndarray, min_support: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Merge neighbouring score bins until each holds ``min_support`` observations.

    Parameters
    ----------
    scores : np.ndarray
        Distinct scores sorted ascending (best first)
    n_target, n_decoy : np.ndarray
        Observation counts per score
    min_support : int
        Minimal combined target+decoy count per bin

    Returns
    -------
    edges : np.ndarray
        Upper (worst) score edge of each merged bin
    bin_target, bin_decoy : np.ndarray
        Counts of each merged bin

    Notes
    -----
    Bins are accumulated from the best to the worst score and closed as soon
    as they reach ``min_support``. An insufficient remainder at the worst end
    is merged into the last closed bin.
    """
    n = len(scores)
    edges = np.empty(n, dtype=np.float64)
    bin_target = np.zeros(n, dtype=np.int64)
    bin_decoy = np.zeros(n, dtype=np.int64)

    n_bins = 0
    acc_target = 0
    acc_decoy = 0
    for i in range(n):
        acc_target += n_target[i]
        acc_decoy += n_decoy[i]
        if acc_target + acc_decoy >= min_support:
            edges[n_bins] = scores[i]
            bin_target[n_bins] = acc_target
            bin_decoy[n_bins] = acc_decoy
            n_bins += 1
            acc_target = 0
            acc_decoy = 0

    if acc_target + acc_decoy > 0:
        if n_bins == 0:
            edges[0] = scores[n - 1]
            bin_target[0] = acc_target
            bin_decoy[0] = acc_decoy
            n_bins = 1
        else:
            edges[n_bins - 1] = scores[n - 1]
            bin_target[n_bins - 1] += acc_target
            bin_decoy[n_bins - 1] += acc_decoy

    return edges[:n_bins], bin_target[:n_bins], bin_decoy[:n_bins]


@njit
def _estimate_bin_probabilities(bin_target: np.ndarray, bin_decoy: np.ndarray) -> np.ndarray:
    """Local decoy ratio per bin with a running maximum from best to worst.

    Returns
    -------
    np.ndarray
        Probability per bin, non-decreasing with worsening score
    """
    n = len(bin_target)
    probabilities = np.empty(n, dtype=np.float64)
    running_max = 0.0
    for i in range(n):
        total = bin_target[i] + bin_decoy[i]
        if total > 0:
            p = bin_decoy[i] / total
        else:
            p = running_max
        if p > running_max:
            running_max = p
        probabilities[i] = running_max
    return probabilities


@njit
def _score_limit(
    scores: np.ndarray, n_target: np.ndarray, n_decoy: np.ndarray, target_fdr: float
) -> tuple[float, bool]:
    """Worst target score whose cumulative decoy/target ratio is <= target_fdr.

    Returns
    -------
    limit : float
        Score cutoff (valid only if ``found``)
    found : bool
        False if no target score satisfies the FDR
    """
    cumulative_target = 0
    cumulative_decoy = 0
    limit = -np.inf
    found = False
    for i in range(len(scores)):
        cumulative_target += n_target[i]
        cumulative_decoy += n_decoy[i]
        if n_target[i] == 0:
            continue
        if cumulative_decoy <= target_fdr * cumulative_target:
            limit = scores[i]
            found = True
    return limit, found


# =============================================================================
# Target/Decoy Map
# =============================================================================

class TargetDecoyMap:
    """Histogram-based posterior error probability estimator.

    Parameters
    ----------
    min_support : int
        Minimal combined target+decoy count per bin after ``cure()``
    suspicious_n_max : int
        The map is suspicious if fewer targets score better than the best decoy

    Attributes
    ----------
    n_target : int
        Number of target observations
    n_decoy : int
        Number of decoy observations
    """

    def __init__(
        self,
        min_support: int = DEFAULT_MIN_SUPPORT,
        suspicious_n_max: int = DEFAULT_SUSPICIOUS_N_MAX,
    ):
        self.min_support = min_support
        self.suspicious_n_max = suspicious_n_max
        self._hits: Dict[float, List[int]] = {}
        self.n_target = 0
        self.n_decoy = 0
        self._edges = None
        self._bin_target = None
        self._bin_decoy = None
        self._probabilities = None
        self._cured = False
        self._no_validated = False

    def __len__(self) -> int:
        return self.n_target + self.n_decoy

    # -------------------------------------------------------------------------
    # Observations
    # -------------------------------------------------------------------------

    def add_point(self, score: float, is_decoy: bool) -> None:
        counts = self._hits.setdefault(float(score), [0, 0])
        if is_decoy:
            counts[1] += 1
            self.n_decoy += 1
        else:
            counts[0] += 1
            self.n_target += 1
        self._invalidate()

    def remove_point(self, score: float, is_decoy: bool) -> None:
        """Remove one observation previously added with the same arguments.

        Raises
        ------
        KeyError
            If no such observation exists
        """
        score = float(score)
        counts = self._hits.get(score)
        index = 1 if is_decoy else 0
        if counts is None or counts[index] == 0:
            label = "decoy" if is_decoy else "target"
            raise KeyError(f"No {label} observation at score {score}")
        counts[index] -= 1
        if is_decoy:
            self.n_decoy -= 1
        else:
            self.n_target -= 1
        if counts[0] == 0 and counts[1] == 0:
            del self._hits[score]
        self._invalidate()

    def _invalidate(self) -> None:
        self._edges = None
        self._probabilities = None
        self._cured = False

    def _observation_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        scores = np.array(sorted(self._hits), dtype=np.float64)
        n_target = np.array([self._hits[s][0] for s in scores], dtype=np.int64)
        n_decoy = np.array([self._hits[s][1] for s in scores], dtype=np.int64)
        return scores, n_target, n_decoy

    # -------------------------------------------------------------------------
    # Probability curve
    # -------------------------------------------------------------------------

    def cure(self) -> None:
        """Merge sparse score bins. Observation counts are preserved."""
        scores, n_target, n_decoy = self._observation_arrays()
        if len(scores) == 0:
            self._edges = scores
            self._bin_target = n_target
            self._bin_decoy = n_decoy
        else:
            self._edges, self._bin_target, self._bin_decoy = _cure_bins(
                scores, n_target, n_decoy, self.min_support
            )
        self._probabilities = None
        self._cured = True

    def estimate_probabilities(self) -> None:
        """Compute the monotonic probability of every bin.

        Uncured maps use one bin per distinct score.
        """
        if self._edges is None:
            self._edges, self._bin_target, self._bin_decoy = self._observation_arrays()
        self._probabilities = _estimate_bin_probabilities(self._bin_target, self._bin_decoy)

    def get_probability(self, score: float) -> float:
        """Return the posterior error probability of a raw score.

        Empty maps return 1.0. Scores worse than every bin get the worst
        bin's probability.
        """
        if self._probabilities is None:
            self.estimate_probabilities()
        n_bins = len(self._edges)
        if n_bins == 0:
            return 1.0
        index = int(np.searchsorted(self._edges, score, side="left"))
        if index >= n_bins:
            index = n_bins - 1
        return float(self._probabilities[index])

    def get_bins(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(upper score edges, target counts, decoy counts)`` of the bins."""
        if self._edges is None:
            return self._observation_arrays()
        return self._edges.copy(), self._bin_target.copy(), self._bin_decoy.copy()

    @property
    def is_cured(self) -> bool:
        return self._cured

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def get_score_limit(self, target_fdr: float) -> float:
        """Return the worst score validated at ``target_fdr`` (a fraction).

        Sets ``no_validated()`` when no target score satisfies the FDR, in
        which case ``-inf`` is returned.
        """
        if not 0.0 <= target_fdr <= 1.0:
            raise ValueError(f"target_fdr must be a fraction in [0, 1], got {target_fdr}")
        scores, n_target, n_decoy = self._observation_arrays()
        if len(scores) == 0:
            self._no_validated = True
            return -np.inf
        limit, found = _score_limit(scores, n_target, n_decoy, target_fdr)
        self._no_validated = not found
        return float(limit)

    def no_validated(self) -> bool:
        """True if the last ``get_score_limit`` call found no acceptable cutoff."""
        return self._no_validated

    @property
    def n_max(self) -> int:
        """Number of targets scoring strictly better than the best decoy."""
        n_max = 0
        for score in sorted(self._hits):
            n_target, n_decoy = self._hits[score]
            if n_decoy > 0:
                break
            n_max += n_target
        return n_max

    def suspicious_input(self) -> bool:
        """Advisory flag for maps without a robust target/decoy separation."""
        return self.n_decoy == 0 or self.n_max < self.suspicious_n_max

    def __repr__(self) -> str:
        return f"TargetDecoyMap(n_target={self.n_target}, n_decoy={self.n_decoy})"
