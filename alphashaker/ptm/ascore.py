"""Binomial A-score for modification site localization.

For a peptide carrying one copy of a modification, every residue that can
carry the modification is a candidate site. Each candidate is scored against
the spectrum at peak depths 1..``max_peak_depth`` (most intense peaks per
100 Th window):

    P(d)  = P(X >= k), X ~ Binomial(n, d / 100)
    S(d)  = -10 log10 P(d)

with n theoretical b/y ions and k of them matched. The weighted peptide score
ranks the candidates. The A-score of the best candidate is the largest
difference ``S_best(d) - S_second(d)`` computed on the site-determining ions
of the two best candidates.

Returned scores map site sets (tuples of 1-based peptide sites) to scores:
the best site set gets its A-score, the other candidates get their peptide
score minus the best peptide score (<= 0).

Examples
--------
>>> scorer = AScorer(SearchParameters.default(), AnnotationParameters())
>>> scores = scorer.score(peptide, "Phospho", spectrum, charge=2)
>>> scores
{(4,): 23.1, (5,): -17.4}
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Tuple

import numpy as np
from numba import njit

from ..constants import A_SCORE_UNAMBIGUOUS
from ..identification.matches import Peptide
from ..identification.providers import Spectrum
from ..parameters import AnnotationParameters, SearchParameters
from .fragments import (
    count_matched_ions,
    encode_peptide_to_ord,
    generate_modified_by_ions,
    modifications_to_array,
    select_top_peaks,
    site_determining_ions,
)

logger = logging.getLogger(__name__)

# Weights of the peak depths 1..10 in the peptide score
DEPTH_WEIGHTS = np.array([0.5, 0.75, 1.0, 1.0, 1.0, 1.0, 0.75, 0.5, 0.25, 0.25])

# Floor of the binomial tail to keep the log finite
MIN_PROBABILITY = 1e-300


@njit
def binomial_tail(k: int, n: int, p: float) -> float:
    """P(X >= k) for X ~ Binomial(n, p), summed in log space."""
    if k <= 0:
        return 1.0
    if k > n or p <= 0.0:
        return 0.0
    if p >= 1.0:
        return 1.0
    log_p = math.log(p)
    log_q = math.log(1.0 - p)
    total = 0.0
    for t in range(k, n + 1):
        log_comb = math.lgamma(n + 1) - math.lgamma(t + 1) - math.lgamma(n - t + 1)
        total += math.exp(log_comb + t * log_p + (n - t) * log_q)
    return min(total, 1.0)


@njit
def depth_scores(
    theoretical_mz: np.ndarray,
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    max_depth: int,
    tol_ppm: float,
) -> np.ndarray:
    """Binomial score ``-10 log10 P`` of the ions at each peak depth."""
    scores = np.zeros(max_depth, dtype=np.float64)
    n = len(theoretical_mz)
    if n == 0:
        return scores
    for d in range(1, max_depth + 1):
        keep = select_top_peaks(spectrum_mz, spectrum_intensity, d, 100.0)
        k = count_matched_ions(theoretical_mz, spectrum_mz[keep], tol_ppm)
        p = binomial_tail(k, n, d / 100.0)
        scores[d - 1] = -10.0 * math.log10(max(p, MIN_PROBABILITY))
    return scores


class AScorer:
    """Fragment-ion evidence based localization score.

    Parameters
    ----------
    search_parameters : SearchParameters
        Modification masses and residues, fragment tolerance
    annotation_parameters : AnnotationParameters
        Fragment types and charges, maximal peak depth
    """

    def __init__(
        self,
        search_parameters: SearchParameters,
        annotation_parameters: Optional[AnnotationParameters] = None,
    ):
        self.search_parameters = search_parameters
        self.annotation_parameters = (
            annotation_parameters if annotation_parameters is not None
            else AnnotationParameters()
        )

    def _filtered_peaks(self, spectrum: Spectrum) -> Tuple[np.ndarray, np.ndarray]:
        mz, intensity = spectrum.mz, spectrum.intensity
        min_relative = self.annotation_parameters.min_relative_intensity
        if min_relative > 0 and len(intensity) > 0:
            keep = intensity >= min_relative * intensity.max()
            mz, intensity = mz[keep], intensity[keep]
        return mz, intensity

    def _fragments(self, peptide: Peptide, modification: str, site: int, charge: int) -> np.ndarray:
        mods = []
        for match in peptide.modification_matches:
            if match.name == modification and match.variable:
                continue
            mods.append((match.site, self.search_parameters.get_modification(match.name).mass))
        mods.append((site, self.search_parameters.get_modification(modification).mass))
        return generate_modified_by_ions(
            encode_peptide_to_ord(peptide.sequence),
            modifications_to_array(mods),
            charge,
            tuple(self.annotation_parameters.fragment_types),
            tuple(self.annotation_parameters.fragment_charges),
        )

    def candidate_sites(self, peptide: Peptide, modification: str) -> Tuple[int, ...]:
        """1-based sites that can carry the modification."""
        residues = self.search_parameters.get_modification(modification).residues
        sites = {i + 1 for i, aa in enumerate(peptide.sequence) if aa in residues}
        sites.update(
            m.site for m in peptide.modification_matches
            if m.name == modification and m.variable
        )
        return tuple(sorted(sites))

    def score(
        self,
        peptide: Peptide,
        modification: str,
        spectrum: Optional[Spectrum],
        charge: int,
    ) -> Optional[Dict[Tuple[int, ...], float]]:
        """Score the candidate sites of a modification present once.

        Returns None when no spectrum is available or a modification of the
        peptide is missing from the modification profile.
        """
        if spectrum is None:
            return None
        try:
            sites = self.candidate_sites(peptide, modification)
            if len(sites) == 1:
                return {sites: A_SCORE_UNAMBIGUOUS}
            fragments = {
                site: self._fragments(peptide, modification, site, charge) for site in sites
            }
        except KeyError as e:
            logger.debug(f"No localization score for {peptide!r}: {e}")
            return None

        mz, intensity = self._filtered_peaks(spectrum)
        tol_ppm = self.search_parameters.fragment_tolerance_ppm
        max_depth = min(self.annotation_parameters.max_peak_depth, len(DEPTH_WEIGHTS))
        weights = DEPTH_WEIGHTS[:max_depth]

        peptide_scores = {}
        for site in sites:
            per_depth = depth_scores(fragments[site], mz, intensity, max_depth, tol_ppm)
            peptide_scores[site] = float(np.dot(per_depth, weights) / weights.sum())

        ranked = sorted(sites, key=lambda s: (-peptide_scores[s], s))
        best, second = ranked[0], ranked[1]
        best_ions = site_determining_ions(fragments[best], fragments[second], tol_ppm)
        second_ions = site_determining_ions(fragments[second], fragments[best], tol_ppm)
        if len(best_ions) == 0 and len(second_ions) == 0:
            a_score = 0.0
        else:
            best_scores = depth_scores(best_ions, mz, intensity, max_depth, tol_ppm)
            second_scores = depth_scores(second_ions, mz, intensity, max_depth, tol_ppm)
            a_score = max(0.0, float(np.max(best_scores - second_scores)))

        result = {(best,): a_score}
        for site in ranked[1:]:
            result[(site,)] = peptide_scores[site] - peptide_scores[best]
        return result
