"""Hierarchical PSM → peptide → protein probability aggregation.

``HierarchicalAggregator.process_identifications`` runs the full validation
chain over the matches of an ``IdentificationStore``:

1. calibrated search engine probabilities per assumption (``InputMap``)
2. consensus best assumption per spectrum, PSM map filled, cured, estimated
3. PSM posterior probabilities, peptide and protein matches built
4. peptide scores (product of PSM probabilities), peptide map
5. protein scores (product of peptide probabilities), protein map
6. protein group resolution, protein probabilities
7. FDR validation, PTM localization, suspicious input report

Per-fraction scores follow the same product rule restricted to the spectra
of one spectrum file. Every stage checks the cancellation flag of the
``WaitingHandler`` and commits its changes with ``store.flush()``.

Examples
--------
>>> aggregator = HierarchicalAggregator(store, sequence_provider=proteins)
>>> input_map = aggregator.build_input_map()
>>> aggregator.process_identifications(input_map, WaitingHandler())
>>> aggregator.metrics.protein_keys[:10]
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..identification.match_parameter import MatchParameter
from ..identification.matches import (
    PeptideMatch,
    ProteinMatch,
    modification_family_from_key,
    protein_key,
    spectrum_file_from_key,
)
from ..identification.providers import SequenceProvider, SpectrumProvider
from ..identification.store import IdentificationStore
from ..parameters import AnnotationParameters, SearchParameters, ValidationParameters
from ..progress import WaitingHandler
from ..ptm.localization import PtmLocalizationScorer
from ..scoring.input_map import InputMap
from ..scoring.specific_maps import PeptideSpecificMap, ProteinMap, PsmSpecificMap
from .consensus import PsmConsensusSelector
from .metrics import Metrics
from .protein_groups import ProteinGroupResolver
from .validator import ValidationEngine, ValidationSummary

logger = logging.getLogger(__name__)


class HierarchicalAggregator:
    """Validation pipeline over an identification store.

    Parameters
    ----------
    store : IdentificationStore
        Spectrum matches with their assumptions; peptide and protein matches
        are built by the aggregator
    validation_parameters : ValidationParameters, optional
    search_parameters : SearchParameters, optional
        Defaults to ``SearchParameters.default()``
    annotation_parameters : AnnotationParameters, optional
    sequence_provider : SequenceProvider, optional
        Protein descriptions and sequences
    spectrum_provider : SpectrumProvider, optional
        Spectra for the localization score

    Attributes
    ----------
    psm_map, peptide_map, protein_map
        Target/decoy maps of the last run
    metrics : Metrics
        Protein ordering and reporting maxima
    validation_summary : ValidationSummary
        Validated counts of the last FDR validation
    """

    def __init__(
        self,
        store: IdentificationStore,
        validation_parameters: Optional[ValidationParameters] = None,
        search_parameters: Optional[SearchParameters] = None,
        annotation_parameters: Optional[AnnotationParameters] = None,
        sequence_provider: Optional[SequenceProvider] = None,
        spectrum_provider: Optional[SpectrumProvider] = None,
    ):
        self.store = store
        self.parameters = (
            validation_parameters if validation_parameters is not None
            else ValidationParameters()
        )
        self.search_parameters = (
            search_parameters if search_parameters is not None
            else SearchParameters.default()
        )
        self.sequence_provider = (
            sequence_provider if sequence_provider is not None else SequenceProvider([])
        )
        self.metrics = Metrics()
        self.validation_engine = ValidationEngine(self.parameters)
        self.validation_summary: Optional[ValidationSummary] = None
        self.ptm_scorer = PtmLocalizationScorer(
            store,
            self.search_parameters,
            annotation_parameters,
            spectrum_provider=spectrum_provider,
            sequence_provider=self.sequence_provider,
        )

        self.psm_map = PsmSpecificMap.from_parameters(self.parameters)
        self.peptide_map = PeptideSpecificMap.from_parameters(self.parameters)
        self.protein_map = ProteinMap.from_parameters(self.parameters)

        self.protein_count: Dict[str, int] = {}
        self._protein_count_injected = False

    def set_protein_count_map(self, protein_count: Dict[str, int]) -> None:
        """Provide the accession → first-hit count table used by the consensus."""
        self.protein_count = dict(protein_count)
        self._protein_count_injected = True

    def build_input_map(self) -> InputMap:
        """Fill an ``InputMap`` with the first hits of every advocate."""
        input_map = InputMap.from_parameters(self.parameters)
        for key in self.store.spectrum_keys():
            spectrum_match = self.store.get_spectrum_match(key)
            for advocate in spectrum_match.advocates():
                first_hit = spectrum_match.get_first_hit(advocate)
                if first_hit is not None:
                    input_map.add_point(advocate, first_hit.score, first_hit.peptide.is_decoy())
        return input_map

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run_stages(
        self, stages: List[Tuple[str, Callable[[], None]]], waiting_handler: WaitingHandler
    ) -> bool:
        """Run stages in order. Returns False if the run was canceled."""
        for message, stage in stages:
            if waiting_handler.is_run_canceled():
                return False
            waiting_handler.append_report(message)
            stage()
            self.store.flush()
            waiting_handler.increase_progress()
        return not waiting_handler.is_run_canceled()

    def process_identifications(
        self, input_map: InputMap, waiting_handler: Optional[WaitingHandler] = None
    ) -> None:
        """Run the full validation chain.

        A canceled run stops at the next stage boundary, keeping the changes
        committed so far.
        """
        if waiting_handler is None:
            waiting_handler = WaitingHandler()
        wh = waiting_handler

        self.psm_map = PsmSpecificMap.from_parameters(self.parameters)
        self.peptide_map = PeptideSpecificMap.from_parameters(self.parameters)
        self.protein_map = ProteinMap.from_parameters(self.parameters)

        def psm_stage():
            self._fill_psm_map(input_map, wh)
            if not wh.is_run_canceled():
                self.psm_map.cure()

        def peptide_stage():
            self._fill_peptide_map(wh)
            if not wh.is_run_canceled():
                self.peptide_map.cure()

        stages = [
            ("Computing assumptions probabilities.",
             lambda: input_map.estimate_probabilities(wh)),
            ("Saving assumptions probabilities.",
             lambda: self._attach_assumption_probabilities(input_map, wh)),
            ("Selecting best peptide per spectrum.", psm_stage),
            ("Computing PSM probabilities.",
             lambda: self.psm_map.estimate_probabilities(wh)),
            ("Saving probabilities, building peptides and proteins.",
             lambda: self._attach_psm_probabilities_and_build(wh)),
            ("Generating peptide map.", peptide_stage),
            ("Computing peptide probabilities.",
             lambda: self.peptide_map.estimate_probabilities(wh)),
            ("Saving peptide probabilities.",
             lambda: self._attach_peptide_probabilities(wh)),
            ("Generating protein map.", lambda: self._fill_protein_map(wh)),
            ("Resolving protein inference issues, inferring peptide and protein PI status.",
             lambda: self._clean_protein_groups(wh)),
            ("Correcting protein probabilities.",
             lambda: self.protein_map.estimate_probabilities(wh)),
            ("Saving protein probabilities.",
             lambda: self._attach_protein_probabilities(wh)),
            (f"Validating identifications at {self.parameters.protein_fdr}% FDR.",
             lambda: self.fdr_validation(wh)),
            ("Scoring PTMs in peptides.", lambda: self.ptm_scorer.score_peptides(wh)),
            ("Scoring PTMs in proteins.", lambda: self._score_protein_ptms(wh)),
        ]
        if not self._run_stages(stages, wh):
            logger.warning("Identification processing canceled")
            return

        wh.append_report(self._suspicious_report(input_map))
        wh.set_run_finished()
        logger.info("✓ Identification processing completed")

    def fdr_validation(self, waiting_handler: Optional[WaitingHandler] = None) -> ValidationSummary:
        self.validation_summary = self.validation_engine.validate(
            self.store, self.psm_map, self.peptide_map, self.protein_map, waiting_handler
        )
        return self.validation_summary

    # -------------------------------------------------------------------------
    # Incremental reprocessing
    # -------------------------------------------------------------------------

    def spectrum_map_changed(self, waiting_handler: Optional[WaitingHandler] = None) -> None:
        """Rebuild peptides and proteins after a change of the PSM map."""
        wh = waiting_handler if waiting_handler is not None else WaitingHandler()
        self.peptide_map = PeptideSpecificMap.from_parameters(self.parameters)
        self.protein_map = ProteinMap.from_parameters(self.parameters)

        def peptide_stage():
            self._fill_peptide_map(wh)
            self.peptide_map.cure()
            self.peptide_map.estimate_probabilities(wh)

        if self._run_stages([
            ("Saving probabilities, building peptides and proteins.",
             lambda: self._attach_psm_probabilities_and_build(wh)),
            ("Generating peptide map.", peptide_stage),
            ("Saving peptide probabilities.", lambda: self._attach_peptide_probabilities(wh)),
        ], wh):
            self._rebuild_proteins(wh)

    def peptide_map_changed(self, waiting_handler: Optional[WaitingHandler] = None) -> None:
        """Recompute peptide probabilities and every protein level result."""
        wh = waiting_handler if waiting_handler is not None else WaitingHandler()
        self.protein_map = ProteinMap.from_parameters(self.parameters)
        if self._run_stages([
            ("Saving peptide probabilities.", lambda: self._attach_peptide_probabilities(wh)),
        ], wh):
            self._rebuild_proteins(wh)

    def protein_map_changed(self, waiting_handler: Optional[WaitingHandler] = None) -> None:
        """Re-read the protein probabilities from the protein map."""
        wh = waiting_handler if waiting_handler is not None else WaitingHandler()
        self._run_stages([
            ("Saving protein probabilities.", lambda: self._attach_protein_probabilities(wh)),
        ], wh)

    def _rebuild_proteins(self, wh: WaitingHandler) -> bool:
        return self._run_stages([
            ("Generating protein map.", lambda: self._fill_protein_map(wh)),
            ("Resolving protein inference issues, inferring peptide and protein PI status.",
             lambda: self._clean_protein_groups(wh)),
            ("Correcting protein probabilities.",
             lambda: self.protein_map.estimate_probabilities(wh)),
            ("Saving protein probabilities.",
             lambda: self._attach_protein_probabilities(wh)),
        ], wh)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _attach_assumption_probabilities(self, input_map: InputMap, wh: WaitingHandler) -> None:
        """Attach monotonic engine probabilities and count first-hit proteins."""
        keys = self.store.spectrum_keys()
        wh.start_stage(len(keys))
        if not self._protein_count_injected:
            self.protein_count = {}

        for key in keys:
            spectrum_match = self.store.get_spectrum_match(key)
            for advocate in spectrum_match.advocates():
                by_score = spectrum_match.get_assumptions(advocate)
                previous = 0.0
                for score in sorted(by_score):
                    probability = max(input_map.get_probability(advocate, score), previous)
                    previous = probability
                    for assumption in by_score[score]:
                        assumption.search_engine_probability = probability

                if not self._protein_count_injected:
                    first_hit = spectrum_match.get_first_hit(advocate)
                    if first_hit is not None:
                        for accession in first_hit.peptide.parent_proteins:
                            self.protein_count[accession] = self.protein_count.get(accession, 0) + 1

            self.store.set_match_changed(spectrum_match)
            wh.increase_secondary_progress()
            if wh.is_run_canceled():
                return

    def _fill_psm_map(self, input_map: InputMap, wh: WaitingHandler) -> None:
        keys = self.store.spectrum_keys()
        wh.start_stage(len(keys))
        selector = PsmConsensusSelector(input_map.is_multiple_search_engines(), self.protein_count)

        for key in keys:
            spectrum_match = self.store.get_spectrum_match(key)
            best = selector.select(spectrum_match)
            wh.increase_secondary_progress()
            if best is None:
                logger.debug(f"No assumption for spectrum {key!r}")
                continue
            assumption = best.assumption
            spectrum_match.set_first_hit(assumption.advocate, assumption)
            spectrum_match.best_assumption = assumption

            map_key = self.psm_map.get_key(assumption.charge, spectrum_match.spectrum_file)
            self.psm_map.add_point(map_key, best.probability, assumption.peptide.is_decoy())
            self.store.add_match_parameter(
                key, MatchParameter(probability_score=best.probability, specific_map_key=map_key)
            )
            self.store.set_match_changed(spectrum_match)
            if wh.is_run_canceled():
                return

        self.protein_count.clear()
        self._protein_count_injected = False

    def _attach_psm_probabilities_and_build(self, wh: WaitingHandler) -> None:
        """Attach PSM probabilities and rebuild peptide and protein matches."""
        for key in self.store.protein_keys() + self.store.peptide_keys():
            self.store.remove_match(key)

        keys = self.store.spectrum_keys()
        wh.start_stage(len(keys))
        for key in keys:
            wh.increase_secondary_progress()
            if not self.store.has_match_parameter(key):
                continue
            parameter = self.store.get_match_parameter(key)
            parameter.probability = self.psm_map.get_probability(
                parameter.specific_map_key, parameter.probability_score
            )
            self._build_peptide_and_protein(key)
            if wh.is_run_canceled():
                return

    def _build_peptide_and_protein(self, spectrum_key: str) -> None:
        peptide = self.store.get_spectrum_match(spectrum_key).best_assumption.peptide
        peptide_key = peptide.key
        if peptide_key in self.store:
            peptide_match = self.store.get_peptide_match(peptide_key)
            peptide_match.add_spectrum_match(spectrum_key)
            self.store.set_match_changed(peptide_match)
        else:
            peptide_match = PeptideMatch(peptide)
            peptide_match.add_spectrum_match(spectrum_key)
            self.store.add_peptide_match(peptide_match)

        if not peptide.parent_proteins:
            return
        group_key = protein_key(peptide.parent_proteins)
        if group_key in self.store:
            protein_match = self.store.get_protein_match(group_key)
            protein_match.add_peptide_match(peptide_key)
            self.store.set_match_changed(protein_match)
        else:
            protein_match = ProteinMatch(peptide.parent_proteins)
            protein_match.add_peptide_match(peptide_key)
            self.store.add_protein_match(protein_match)

    def _fill_peptide_map(self, wh: WaitingHandler) -> None:
        keys = self.store.peptide_keys()
        wh.start_stage(len(keys))
        found_modifications = set()

        for key in keys:
            peptide_match = self.store.get_peptide_match(key)
            family = modification_family_from_key(key)
            found_modifications.update(
                peptide_match.theoretic_peptide.variable_modification_sites()
            )
            score = 1.0
            fraction_scores: Dict[str, float] = {}
            for spectrum_key in peptide_match.spectrum_keys:
                probability = self.store.get_match_parameter(spectrum_key).probability
                score *= probability
                fraction = spectrum_file_from_key(spectrum_key)
                fraction_scores[fraction] = fraction_scores.get(fraction, 1.0) * probability

            map_key = self.peptide_map.get_key(family)
            self.store.add_match_parameter(key, MatchParameter(
                probability_score=score,
                specific_map_key=map_key,
                fraction_scores=fraction_scores,
            ))
            self.peptide_map.add_point(map_key, score, peptide_match.is_decoy())
            wh.increase_secondary_progress()
            if wh.is_run_canceled():
                return

        self.metrics.found_modifications = sorted(found_modifications)

    def _attach_peptide_probabilities(self, wh: WaitingHandler) -> None:
        keys = self.store.peptide_keys()
        wh.start_stage(len(keys))
        for key in keys:
            parameter = self.store.get_match_parameter(key)
            map_key = parameter.specific_map_key
            parameter.probability = self.peptide_map.get_probability(
                map_key, parameter.probability_score
            )
            parameter.fraction_pep = {
                fraction: self.peptide_map.get_probability(map_key, score)
                for fraction, score in parameter.fraction_scores.items()
            }
            wh.increase_secondary_progress()
            if wh.is_run_canceled():
                return

    def _fill_protein_map(self, wh: WaitingHandler) -> None:
        keys = self.store.protein_keys()
        wh.start_stage(len(keys))
        for key in keys:
            wh.increase_secondary_progress()
            if wh.is_run_canceled():
                return
            protein_match = self.store.get_protein_match(key)
            score = 1.0
            fraction_scores: Dict[str, float] = {}
            for peptide_key in protein_match.peptide_keys:
                peptide_parameter = self.store.get_match_parameter(peptide_key)
                score *= peptide_parameter.probability
                for fraction, pep in peptide_parameter.fraction_pep.items():
                    fraction_scores[fraction] = fraction_scores.get(fraction, 1.0) * pep

            self.store.add_match_parameter(key, MatchParameter(
                probability_score=score, fraction_scores=fraction_scores
            ))
            self.protein_map.add_point(score, protein_match.is_decoy())

    def _clean_protein_groups(self, wh: WaitingHandler) -> None:
        resolver = ProteinGroupResolver(
            self.store, self.protein_map, self.sequence_provider, self.metrics
        )
        resolver.resolve(wh)

    def _attach_protein_probabilities(self, wh: WaitingHandler) -> None:
        keys = self.store.protein_keys()
        wh.start_stage(len(keys))
        for key in keys:
            parameter = self.store.get_match_parameter(key)
            parameter.probability = self.protein_map.get_probability(parameter.probability_score)
            parameter.fraction_pep = {
                fraction: self.protein_map.get_probability(score)
                for fraction, score in parameter.fraction_scores.items()
            }
            wh.increase_secondary_progress()
            if wh.is_run_canceled():
                return

    def _score_protein_ptms(self, wh: WaitingHandler) -> None:
        self.metrics.n_validated_proteins = self.ptm_scorer.score_proteins(wh)

    # -------------------------------------------------------------------------
    # Report
    # -------------------------------------------------------------------------

    def _suspicious_report(self, input_map: InputMap) -> str:
        report = "Identification processing completed."
        suspicious_input = input_map.suspicious_input()
        suspicious_psms = self.psm_map.suspicious_input()
        suspicious_peptides = self.peptide_map.suspicious_input()
        suspicious_proteins = self.protein_map.suspicious_input()

        if not (suspicious_input or suspicious_psms or suspicious_peptides or suspicious_proteins):
            return report
        logger.warning("Non robust statistical estimations, check the identification quality")
        if not self.parameters.detailed_report:
            return report

        lines = [
            report,
            "The following identification classes retrieved non robust statistical "
            "estimations, we advise to control the quality of the corresponding matches:",
        ]
        if suspicious_input:
            advocates = ", ".join(f"Advocate {advocate}" for advocate in suspicious_input)
            lines.append(f"{advocates} identifications.")
        if suspicious_psms:
            lines.append(f"{', '.join(suspicious_psms)} charged spectra.")
        if suspicious_peptides:
            lines.append(f"{', '.join(suspicious_peptides)} modified peptides.")
        if suspicious_proteins:
            lines.append("proteins.")
        return "\n".join(lines)
