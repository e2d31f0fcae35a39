"""PTM localization at spectrum, peptide and protein level.

Spectrum level
    For every localizable variable modification of the best assumption:
    the delta score ``(p_alternative - p_best) * 100`` against the best
    alternative assumption with the same sequence and another site
    assignment, the localization score of a pluggable scorer (A-score by
    default) when the modification occurs once, and the confidence tier.

Peptide level
    Scores of the validated spectra (or, without validated spectra, of the
    spectra of maximal PSM confidence) merged per modification, then the
    main and secondary sites are derived from the merged scores.

Protein level
    Main and secondary sites of the validated modified peptides translated
    to 1-based protein coordinates for every occurrence of the peptide in
    the protein sequence.
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from ..identification.matches import (
    Peptide,
    PeptideMatch,
    ProteinMatch,
    SpectrumMatch,
    is_modified_key,
    peptide_sequence_from_key,
)
from ..identification.providers import SequenceProvider, Spectrum, SpectrumProvider
from ..identification.store import IdentificationStore
from ..parameters import AnnotationParameters, SearchParameters
from ..progress import WaitingHandler
from .ascore import AScorer
from .scoring import PSPtmScores, PtmScoring

logger = logging.getLogger(__name__)


class LocalizationScorer(Protocol):
    """Site-set scores of one modification from the fragment ion evidence."""

    def score(
        self, peptide: Peptide, modification: str, spectrum: Optional[Spectrum], charge: int
    ) -> Optional[Dict[Tuple[int, ...], float]]:
        ...


def get_protein_modification_indexes(
    protein_sequence: str, peptide_sequence: str, peptide_sites: Iterable[int]
) -> List[int]:
    """Translate 1-based peptide sites to 1-based protein sites.

    Every occurrence of the peptide is considered, overlapping ones
    included. Occurrences are found from the end of the protein backward.

    Examples
    --------
    >>> get_protein_modification_indexes("MKPEPKPEPK", "PEPK", [1])
    [7, 3]
    """
    peptide_sites = list(peptide_sites)
    result = []
    end = len(protein_sequence)
    while True:
        start = protein_sequence.rfind(peptide_sequence, 0, end)
        if start < 0:
            break
        result.extend(start + site for site in peptide_sites)
        end = start + len(peptide_sequence) - 1
    return result


class PtmLocalizationScorer:
    """Score modification sites of the matches in an identification store.

    Parameters
    ----------
    store : IdentificationStore
        Matches and their parameters
    search_parameters : SearchParameters
        Modification profile
    annotation_parameters : AnnotationParameters, optional
        Fragment settings of the default localization scorer
    spectrum_provider : SpectrumProvider, optional
        Without spectra no localization score is computed
    sequence_provider : SequenceProvider, optional
        Protein sequences for the protein level
    localization_scorer : LocalizationScorer, optional
        Defaults to ``AScorer``
    """

    def __init__(
        self,
        store: IdentificationStore,
        search_parameters: SearchParameters,
        annotation_parameters: Optional[AnnotationParameters] = None,
        spectrum_provider: Optional[SpectrumProvider] = None,
        sequence_provider: Optional[SequenceProvider] = None,
        localization_scorer: Optional[LocalizationScorer] = None,
    ):
        self.store = store
        self.search_parameters = search_parameters
        self.spectrum_provider = spectrum_provider
        self.sequence_provider = sequence_provider
        if localization_scorer is None:
            localization_scorer = AScorer(search_parameters, annotation_parameters)
        self.localization_scorer = localization_scorer

    def _localizable_sites(self, peptide: Peptide) -> Dict[str, List[int]]:
        return {
            name: sites
            for name, sites in peptide.variable_modification_sites().items()
            if self.search_parameters.is_residue_modification(name)
        }

    # -------------------------------------------------------------------------
    # Spectrum level
    # -------------------------------------------------------------------------

    def score_spectrum(self, spectrum_match: SpectrumMatch) -> Optional[PSPtmScores]:
        """Attach delta and localization scores and confidence tiers.

        Returns the scores, None if nothing was scored.
        """
        best = spectrum_match.best_assumption
        modifications = {}
        p_best = 1.0
        if best is not None:
            p_best = best.search_engine_probability
            if p_best is None:
                p_best = 1.0
            modifications = self._localizable_sites(best.peptide)
        if p_best >= 1 or not modifications:
            if spectrum_match.ptm_scores is not None:
                spectrum_match.ptm_scores = None
                self.store.set_match_changed(spectrum_match)
            return None

        # Scores always reflect the current assumptions
        ptm_scores = PSPtmScores()

        spectrum = None
        if self.spectrum_provider is not None:
            spectrum = self.spectrum_provider.get_spectrum(spectrum_match.key)

        for modification, sites in modifications.items():
            scoring = PtmScoring(modification)

            delta = self.delta_score(spectrum_match, modification, sites, p_best)
            if delta is not None:
                scoring.add_delta_score(sites, delta)

            if len(sites) == 1:
                a_scores = self.localization_scorer.score(
                    best.peptide, modification, spectrum, best.charge
                )
                if a_scores is not None:
                    for site_set, score in a_scores.items():
                        scoring.add_a_score(site_set, score)

            scoring.assign_confidence()
            ptm_scores.add_ptm_scoring(scoring)

        spectrum_match.ptm_scores = ptm_scores
        self.store.set_match_changed(spectrum_match)
        return ptm_scores

    @staticmethod
    def delta_score(
        spectrum_match: SpectrumMatch,
        modification: str,
        sites: List[int],
        p_best: float,
    ) -> Optional[float]:
        """Delta score of the best assumption's sites, None without alternative."""
        best = spectrum_match.best_assumption
        p_alternative = None
        for assumption in spectrum_match.get_all_assumptions():
            if assumption is best or assumption.peptide.sequence != best.peptide.sequence:
                continue
            new_location = any(
                m.name == modification and m.site not in sites
                for m in assumption.peptide.modification_matches
            )
            if not new_location:
                continue
            p = assumption.search_engine_probability
            if p is None:
                p = 1.0
            if p_alternative is None or p < p_alternative:
                p_alternative = p
        if p_alternative is None:
            return None
        return (p_alternative - p_best) * 100

    def score_psm_ptms(
        self, spectrum_keys: List[str], waiting_handler: Optional[WaitingHandler] = None
    ) -> None:
        """Re-score the PTMs of a list of inspected spectra."""
        if waiting_handler is not None:
            waiting_handler.start_stage(len(spectrum_keys))
        for key in spectrum_keys:
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return
                waiting_handler.increase_secondary_progress()
            self.score_spectrum(self.store.get_spectrum_match(key))
        self.store.flush()

    # -------------------------------------------------------------------------
    # Peptide level
    # -------------------------------------------------------------------------

    def _selected_spectra(self, peptide_match: PeptideMatch) -> List[str]:
        validated = []
        best_keys = []
        best_confidence = 0.0
        for key in peptide_match.spectrum_keys:
            parameter = self.store.get_match_parameter(key)
            if parameter.validated:
                validated.append(key)
            elif not validated:
                if parameter.confidence > best_confidence:
                    best_confidence = parameter.confidence
                    best_keys = [key]
                elif parameter.confidence == best_confidence:
                    best_keys.append(key)
        return validated if validated else best_keys

    def score_peptide(self, peptide_match: PeptideMatch) -> Optional[PSPtmScores]:
        """Merge the spectrum scores of a peptide, None if it has nothing to score."""
        modifications = self._localizable_sites(peptide_match.theoretic_peptide)
        if not modifications:
            return None

        peptide_scores = PSPtmScores()
        for modification in modifications:
            peptide_scores.add_ptm_scoring(PtmScoring(modification))

        for key in self._selected_spectra(peptide_match):
            spectrum_match = self.store.get_spectrum_match(key)
            self.score_spectrum(spectrum_match)
            if spectrum_match.ptm_scores is None:
                continue
            for modification in modifications:
                spectrum_scoring = spectrum_match.ptm_scores.get_ptm_scoring(modification)
                if spectrum_scoring is not None:
                    peptide_scores.get_ptm_scoring(modification).merge(spectrum_scoring)

        for modification in modifications:
            scoring = peptide_scores.get_ptm_scoring(modification)
            scoring.assign_confidence()
            for site in scoring.main_sites():
                peptide_scores.add_main_site(modification, site)
            for site in scoring.secondary_sites():
                peptide_scores.add_secondary_site(modification, site)

        peptide_match.ptm_scores = peptide_scores
        self.store.set_match_changed(peptide_match)
        return peptide_scores

    def score_peptides(self, waiting_handler: Optional[WaitingHandler] = None) -> None:
        keys = self.store.peptide_keys()
        if waiting_handler is not None:
            waiting_handler.start_stage(len(keys))
        for key in keys:
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return
                waiting_handler.increase_secondary_progress()
            self.score_peptide(self.store.get_peptide_match(key))

    # -------------------------------------------------------------------------
    # Protein level
    # -------------------------------------------------------------------------

    def score_protein(
        self,
        protein_match: ProteinMatch,
        rescore_peptides: bool = False,
        waiting_handler: Optional[WaitingHandler] = None,
    ) -> PSPtmScores:
        """Collect the protein sites of the validated modified peptides."""
        protein_scores = PSPtmScores()
        protein_sequence = None
        for peptide_key in protein_match.peptide_keys:
            if not is_modified_key(peptide_key):
                continue
            if not self.store.get_match_parameter(peptide_key).validated:
                continue
            peptide_match = self.store.get_peptide_match(peptide_key)
            if peptide_match.ptm_scores is None or rescore_peptides:
                self.score_peptide(peptide_match)
            peptide_scores = peptide_match.ptm_scores
            if peptide_scores is None:
                continue

            if protein_sequence is None:
                protein_sequence = self._protein_sequence(protein_match, waiting_handler)
                if protein_sequence is None:
                    break
            peptide_sequence = peptide_sequence_from_key(peptide_key)
            for modification in peptide_scores.scored_ptms():
                scoring = peptide_scores.get_ptm_scoring(modification)
                for site in get_protein_modification_indexes(
                    protein_sequence, peptide_sequence, scoring.main_sites()
                ):
                    protein_scores.add_main_site(modification, site)
                for site in get_protein_modification_indexes(
                    protein_sequence, peptide_sequence, scoring.secondary_sites()
                ):
                    protein_scores.add_secondary_site(modification, site)

        protein_match.ptm_scores = protein_scores
        self.store.set_match_changed(protein_match)
        return protein_scores

    def _protein_sequence(
        self, protein_match: ProteinMatch, waiting_handler: Optional[WaitingHandler]
    ) -> Optional[str]:
        accession = protein_match.main_accession
        try:
            if self.sequence_provider is None:
                raise KeyError(accession)
            return self.sequence_provider.get_sequence(accession)
        except KeyError:
            if waiting_handler is not None:
                waiting_handler.append_report(f"Protein not found: {accession}.")
            logger.warning(f"No sequence for {accession}, protein sites not scored")
            return None

    def score_proteins(self, waiting_handler: Optional[WaitingHandler] = None) -> int:
        """Score all protein groups. Returns the number of validated groups."""
        keys = self.store.protein_keys()
        if waiting_handler is not None:
            waiting_handler.start_stage(len(keys))
        n_validated = 0
        for key in keys:
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return n_validated
                waiting_handler.increase_secondary_progress()
            self.score_protein(self.store.get_protein_match(key), waiting_handler=waiting_handler)
            if self.store.get_match_parameter(key).validated:
                n_validated += 1
        return n_validated
