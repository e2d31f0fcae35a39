"""FDR validation of PSMs, peptides and protein groups.

A match is validated iff its subgroup yields a score cutoff at the
configured FDR (``not no_validated()``) and its raw probability score is at
or below that cutoff. Cutoffs are computed per corrected PSM key
(charge, optionally fraction), per corrected peptide key (modification
family) and once for the global protein map.

The engine only reads the maps, so running it twice on unchanged maps
reproduces the same flags.

Examples
--------
>>> engine = ValidationEngine(ValidationParameters(protein_fdr=5.0))
>>> summary = engine.validate(store, psm_map, peptide_map, protein_map)
>>> summary.n_validated_proteins
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..identification.store import IdentificationStore
from ..parameters import ValidationParameters
from ..progress import WaitingHandler
from ..scoring.specific_maps import ProteinMap, SpecificMap
from ..scoring.target_decoy import TargetDecoyMap

logger = logging.getLogger(__name__)

# (score limit, no validated)
Threshold = Tuple[float, bool]


@dataclass
class ValidationSummary:
    """Validated match counts per level and the thresholds used."""

    n_validated_psms: int = 0
    n_validated_peptides: int = 0
    n_validated_proteins: int = 0
    psm_thresholds: Dict[str, Threshold] = field(default_factory=dict)
    peptide_thresholds: Dict[str, Threshold] = field(default_factory=dict)
    protein_threshold: Optional[Threshold] = None


def _threshold(tdm: TargetDecoyMap, fdr_percent: float) -> Threshold:
    limit = tdm.get_score_limit(fdr_percent / 100.0)
    return limit, tdm.no_validated()


def _is_validated(score: float, threshold: Threshold) -> bool:
    limit, no_validated = threshold
    return not no_validated and score <= limit


class ValidationEngine:
    """Flag matches validated at the configured FDR of each level.

    Parameters
    ----------
    parameters : ValidationParameters
        FDR targets in percent
    """

    def __init__(self, parameters: Optional[ValidationParameters] = None):
        self.parameters = parameters if parameters is not None else ValidationParameters()

    def validate(
        self,
        store: IdentificationStore,
        psm_map: SpecificMap,
        peptide_map: SpecificMap,
        protein_map: ProteinMap,
        waiting_handler: Optional[WaitingHandler] = None,
    ) -> ValidationSummary:
        """Set the validation flag of every stored match.

        Returns the summary gathered so far if the run is canceled.
        """
        summary = ValidationSummary()
        n_matches = (
            len(store.protein_keys()) + len(store.peptide_keys()) + len(store.spectrum_keys())
        )
        if waiting_handler is not None:
            waiting_handler.start_stage(n_matches)

        summary.protein_threshold = _threshold(
            protein_map.get_target_decoy_map(), self.parameters.protein_fdr
        )
        for key in store.protein_keys():
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return summary
                waiting_handler.increase_secondary_progress()
            parameter = store.get_match_parameter(key)
            parameter.validated = _is_validated(
                parameter.probability_score, summary.protein_threshold
            )
            summary.n_validated_proteins += parameter.validated

        for key in store.peptide_keys():
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return summary
                waiting_handler.increase_secondary_progress()
            parameter = store.get_match_parameter(key)
            threshold = self._subgroup_threshold(
                peptide_map, parameter.specific_map_key,
                self.parameters.peptide_fdr, summary.peptide_thresholds,
            )
            parameter.validated = _is_validated(parameter.probability_score, threshold)
            summary.n_validated_peptides += parameter.validated

        for key in store.spectrum_keys():
            if waiting_handler is not None:
                if waiting_handler.is_run_canceled():
                    return summary
                waiting_handler.increase_secondary_progress()
            if not store.has_match_parameter(key):
                continue
            parameter = store.get_match_parameter(key)
            threshold = self._subgroup_threshold(
                psm_map, parameter.specific_map_key,
                self.parameters.psm_fdr, summary.psm_thresholds,
            )
            parameter.validated = _is_validated(parameter.probability_score, threshold)
            summary.n_validated_psms += parameter.validated

        logger.info(
            f"✓ Validated {summary.n_validated_psms:,} PSMs, "
            f"{summary.n_validated_peptides:,} peptides, "
            f"{summary.n_validated_proteins:,} protein groups"
        )
        return summary

    @staticmethod
    def _subgroup_threshold(
        specific_map: SpecificMap,
        key: str,
        fdr_percent: float,
        cache: Dict[str, Threshold],
    ) -> Threshold:
        corrected = specific_map.get_corrected_key(key)
        if corrected not in cache:
            cache[corrected] = _threshold(
                specific_map.get_target_decoy_map(corrected), fdr_percent
            )
        return cache[corrected]
