"""PTM site scores and confidence tiers.

A ``PtmScoring`` accumulates, for one modification, the delta scores and
localization (A-) scores of candidate site sets. Site sets are tuples of
1-based sites in the peptide sequence. ``assign_confidence`` retains one
site set and classifies it:

==========  =============  ==================  ===========  ==============
A-score     A-score > 50   A best == delta     delta > 50   tier
==========  =============  ==================  ===========  ==============
yes         no             yes                 yes          CONFIDENT
yes         no             yes                 no           DOUBTFUL
yes         no             no                  any          RANDOM
yes         yes            yes                 any          VERY_CONFIDENT
yes         yes            no                  any          CONFIDENT
no          any            any                 yes          CONFIDENT
no          any            any                 no           DOUBTFUL
neither                                                     RANDOM
==========  =============  ==================  ===========  ==============

``PSPtmScores`` bundles the scorings of one match with its main and
secondary modification sites.
"""

from enum import IntEnum
from typing import Dict, List, Optional, Set, Tuple

from ..constants import A_SCORE_THRESHOLD, DELTA_SCORE_THRESHOLD

SiteSet = Tuple[int, ...]


class ConfidenceTier(IntEnum):
    """Ordered localization confidence."""
    RANDOM = 0
    DOUBTFUL = 1
    CONFIDENT = 2
    VERY_CONFIDENT = 3


def _best_key(scores: Dict[SiteSet, float]) -> Optional[SiteSet]:
    if not scores:
        return None
    return min(scores, key=lambda sites: (-scores[sites], sites))


class PtmScoring:
    """Site scores of one modification."""

    def __init__(self, modification: str):
        self.modification = modification
        self.delta_scores: Dict[SiteSet, float] = {}
        self.a_scores: Dict[SiteSet, float] = {}
        self.site: Optional[SiteSet] = None
        self.confidence = ConfidenceTier.RANDOM

    def add_delta_score(self, sites, score: float) -> None:
        """Record a delta score; an existing higher score for the site set is kept."""
        key = tuple(sorted(sites))
        if key not in self.delta_scores or score > self.delta_scores[key]:
            self.delta_scores[key] = score

    def add_a_score(self, sites, score: float) -> None:
        key = tuple(sorted(sites))
        if key not in self.a_scores or score > self.a_scores[key]:
            self.a_scores[key] = score

    def get_delta_score(self, sites) -> Optional[float]:
        return self.delta_scores.get(tuple(sorted(sites)))

    def get_a_score(self, sites) -> Optional[float]:
        return self.a_scores.get(tuple(sorted(sites)))

    def best_delta_sites(self) -> Optional[SiteSet]:
        return _best_key(self.delta_scores)

    def best_a_score_sites(self) -> Optional[SiteSet]:
        return _best_key(self.a_scores)

    def merge(self, other: 'PtmScoring') -> None:
        """Merge the scores of another scoring, keeping the maximum per site set."""
        for sites, score in other.delta_scores.items():
            self.add_delta_score(sites, score)
        for sites, score in other.a_scores.items():
            self.add_a_score(sites, score)

    def assign_confidence(self) -> ConfidenceTier:
        """Retain a site set and set its confidence tier.

        Without any score the scoring keeps no site and stays RANDOM.
        """
        best_a = self.best_a_score_sites()
        best_delta = self.best_delta_sites()
        confidence = ConfidenceTier.RANDOM

        if best_a is not None:
            retained = best_a
            if self.a_scores[best_a] <= A_SCORE_THRESHOLD:
                if best_a == best_delta:
                    if self.delta_scores[best_delta] > DELTA_SCORE_THRESHOLD:
                        confidence = ConfidenceTier.CONFIDENT
                    else:
                        confidence = ConfidenceTier.DOUBTFUL
            elif best_a == best_delta:
                confidence = ConfidenceTier.VERY_CONFIDENT
            else:
                confidence = ConfidenceTier.CONFIDENT
        elif best_delta is not None:
            retained = best_delta
            if self.delta_scores[best_delta] > DELTA_SCORE_THRESHOLD:
                confidence = ConfidenceTier.CONFIDENT
            else:
                confidence = ConfidenceTier.DOUBTFUL
        else:
            retained = None

        self.site = retained
        self.confidence = confidence
        return confidence

    def main_sites(self) -> List[int]:
        return list(self.site) if self.site is not None else []

    def secondary_sites(self) -> List[int]:
        """Sites of the best delta and A-score site sets outside the main sites."""
        main = set(self.main_sites())
        result = set()
        for sites in (self.best_delta_sites(), self.best_a_score_sites()):
            if sites is not None and sites != self.site:
                result.update(site for site in sites if site not in main)
        return sorted(result)

    def __repr__(self) -> str:
        return (
            f"PtmScoring({self.modification!r}, site={self.site}, "
            f"confidence={self.confidence.name})"
        )


class PSPtmScores:
    """PTM scorings and modification sites of one match."""

    def __init__(self):
        self.ptm_scorings: Dict[str, PtmScoring] = {}
        self.main_sites: Dict[str, Set[int]] = {}
        self.secondary_sites: Dict[str, Set[int]] = {}

    def add_ptm_scoring(self, scoring: PtmScoring) -> None:
        self.ptm_scorings[scoring.modification] = scoring

    def get_ptm_scoring(self, modification: str) -> Optional[PtmScoring]:
        return self.ptm_scorings.get(modification)

    def scored_ptms(self) -> List[str]:
        return sorted(self.ptm_scorings)

    def add_main_site(self, modification: str, site: int) -> None:
        self.main_sites.setdefault(modification, set()).add(site)

    def add_secondary_site(self, modification: str, site: int) -> None:
        self.secondary_sites.setdefault(modification, set()).add(site)

    def get_main_sites(self, modification: str) -> List[int]:
        return sorted(self.main_sites.get(modification, ()))

    def get_secondary_sites(self, modification: str) -> List[int]:
        return sorted(self.secondary_sites.get(modification, ()))
