"""Multi-engine consensus selection of the best assumption per spectrum.

For every spectrum, each advocate's best assumptions (minimal raw score) are
collected and deduplicated by peptide key. Every distinct candidate peptide
gets three attributes:

1. combined probability: product of the calibrated probabilities of all
   advocates proposing the peptide (lower is better)
2. protein evidence: maximal first-hit count of the candidate's parent
   proteins in the run (higher is better)
3. number of supporting advocates (higher is better)

The candidate minimizing ``(probability, -protein evidence, -advocates)``
wins; remaining ties go to the candidate discovered first (advocates in
ascending id order).

Examples
--------
>>> selector = PsmConsensusSelector(multiple_search_engines=True, protein_count=counts)
>>> best = selector.select(spectrum_match)
>>> best.assumption.peptide.key, best.probability
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..identification.matches import PeptideAssumption, SpectrumMatch

logger = logging.getLogger(__name__)


@dataclass
class ConsensusCandidate:
    """A candidate peptide of one spectrum with its tie-break attributes."""

    assumption: PeptideAssumption
    probability: float
    protein_max: int
    n_engines: int
    order: int

    @property
    def sort_key(self) -> Tuple[float, int, int, int]:
        return (self.probability, -self.protein_max, -self.n_engines, self.order)


def _engine_probability(assumption: PeptideAssumption) -> float:
    if assumption.search_engine_probability is None:
        return 1.0
    return assumption.search_engine_probability


class PsmConsensusSelector:
    """Select one best assumption per spectrum across advocates.

    Parameters
    ----------
    multiple_search_engines : bool
        If False, the raw engine score is used as the candidate probability
    protein_count : Dict[str, int], optional
        Accession → number of first-hit peptides mapping to it
    """

    def __init__(
        self,
        multiple_search_engines: bool = True,
        protein_count: Optional[Dict[str, int]] = None,
    ):
        self.multiple_search_engines = multiple_search_engines
        self.protein_count = protein_count if protein_count is not None else {}

    def _protein_max(self, assumption: PeptideAssumption) -> int:
        protein_max = 1
        for accession in assumption.peptide.parent_proteins:
            count = self.protein_count.get(accession)
            if count is not None and count > protein_max:
                protein_max = count
        return protein_max

    def candidates(self, spectrum_match: SpectrumMatch) -> List[ConsensusCandidate]:
        """Return the deduplicated candidates of a spectrum in discovery order."""
        result: List[ConsensusCandidate] = []
        seen = set()
        advocates = spectrum_match.advocates()

        for advocate in advocates:
            for assumption in spectrum_match.get_best_assumptions(advocate):
                peptide_key = assumption.peptide.key
                if peptide_key in seen:
                    continue
                seen.add(peptide_key)

                if self.multiple_search_engines:
                    probability = _engine_probability(assumption)
                else:
                    probability = assumption.score
                n_engines = 1

                for other in advocates:
                    if other == advocate:
                        continue
                    match = self._find_peptide(spectrum_match, other, peptide_key)
                    if match is not None:
                        probability *= _engine_probability(match)
                        n_engines += 1

                result.append(ConsensusCandidate(
                    assumption=assumption,
                    probability=probability,
                    protein_max=self._protein_max(assumption),
                    n_engines=n_engines,
                    order=len(result),
                ))
        return result

    @staticmethod
    def _find_peptide(
        spectrum_match: SpectrumMatch, advocate: int, peptide_key: str
    ) -> Optional[PeptideAssumption]:
        """First assumption of ``advocate`` with this peptide key, by ascending score."""
        by_score = spectrum_match.get_assumptions(advocate)
        for score in sorted(by_score):
            for assumption in by_score[score]:
                if assumption.peptide.key == peptide_key:
                    return assumption
        return None

    def select(self, spectrum_match: SpectrumMatch) -> Optional[ConsensusCandidate]:
        """Return the winning candidate, None for spectra without assumptions."""
        candidates = self.candidates(spectrum_match)
        if not candidates:
            return None
        return min(candidates, key=lambda candidate: candidate.sort_key)
