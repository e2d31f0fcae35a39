"""Tests for FDR validation flags."""

import numpy as np
import pytest

from alphashaker.identification import (
    IdentificationStore,
    MatchParameter,
    Peptide,
    PeptideAssumption,
    PeptideMatch,
    ProteinMatch,
    SpectrumMatch,
)
from alphashaker.parameters import ValidationParameters
from alphashaker.scoring import PeptideSpecificMap, ProteinMap, PsmSpecificMap
from alphashaker.validation import HierarchicalAggregator, ValidationEngine


def _add_spectrum(store, psm_map, index, score, is_decoy, charge):
    accession = "DECOY_P9" if is_decoy else "P1"
    peptide = Peptide(f"PEPTIDE{index}K", parent_proteins=[accession])
    spectrum_match = SpectrumMatch("run1.mgf", f"scan={index}")
    spectrum_match.add_assumption(PeptideAssumption(1, 1, peptide, charge, score))
    store.add_spectrum_match(spectrum_match)
    key = psm_map.get_key(charge, "run1.mgf")
    psm_map.add_point(key, score, is_decoy)
    store.add_match_parameter(
        spectrum_match.key, MatchParameter(probability_score=score, specific_map_key=key)
    )


@pytest.fixture
def validation_input():
    """Store and maps with a separable charge 2 and an inseparable charge 3 subgroup."""
    store = IdentificationStore()
    psm_map = PsmSpecificMap(min_support=1, min_group_size=0)
    peptide_map = PeptideSpecificMap(min_support=1, min_group_size=0)
    protein_map = ProteinMap(min_support=1)

    index = 0
    for score in np.linspace(0.001, 0.01, 20):
        _add_spectrum(store, psm_map, index, float(score), False, 2)
        index += 1
    _add_spectrum(store, psm_map, index, 0.5, True, 2)
    index += 1
    _add_spectrum(store, psm_map, index, 0.001, True, 3)
    index += 1
    _add_spectrum(store, psm_map, index, 0.002, False, 3)

    for sequence, score, is_decoy in [("PEPA", 0.0, False), ("PEPB", 0.0, False),
                                      ("PEPC", 1.0, True)]:
        store.add_peptide_match(PeptideMatch(Peptide(sequence)))
        peptide_map.add_point("unmodified", score, is_decoy)
        store.add_match_parameter(
            sequence, MatchParameter(probability_score=score, specific_map_key="unmodified")
        )

    for accession, score in [("P1", 0.0), ("P2", 0.5), ("DECOY_P3", 0.2)]:
        protein_match = ProteinMatch([accession])
        store.add_protein_match(protein_match)
        protein_map.add_point(score, protein_match.is_decoy())
        store.add_match_parameter(accession, MatchParameter(probability_score=score))

    psm_map.cure()
    peptide_map.cure()
    return store, psm_map, peptide_map, protein_map


class TestValidationEngine:
    """Test validation flags per level."""

    def test_protein_flags(self, validation_input):
        store, psm_map, peptide_map, protein_map = validation_input
        summary = ValidationEngine().validate(store, psm_map, peptide_map, protein_map)

        assert store.get_match_parameter("P1").validated
        assert not store.get_match_parameter("P2").validated
        assert not store.get_match_parameter("DECOY_P3").validated
        assert summary.n_validated_proteins == 1
        assert summary.protein_threshold == (0.0, False)

    def test_peptide_flags(self, validation_input):
        store, psm_map, peptide_map, protein_map = validation_input
        summary = ValidationEngine().validate(store, psm_map, peptide_map, protein_map)

        assert summary.n_validated_peptides == 2
        assert not store.get_match_parameter("PEPC").validated

    def test_subgroup_without_cutoff(self, validation_input):
        """A subgroup whose best observation is a decoy validates nothing."""
        store, psm_map, peptide_map, protein_map = validation_input
        summary = ValidationEngine().validate(store, psm_map, peptide_map, protein_map)

        assert summary.psm_thresholds["3"][1]
        assert not summary.psm_thresholds["2"][1]
        assert summary.n_validated_psms == 20

        flags = {
            key: store.get_match_parameter(key).validated for key in store.spectrum_keys()
        }
        assert not flags["run1.mgf_cus_scan=22"]

    def test_fdr_percent(self, validation_input):
        """FDR values are given in percent."""
        store, psm_map, peptide_map, protein_map = validation_input
        engine = ValidationEngine(ValidationParameters(protein_fdr=50.0))
        summary = engine.validate(store, psm_map, peptide_map, protein_map)
        assert summary.n_validated_proteins == 2
        assert not store.get_match_parameter("DECOY_P3").validated

    def test_idempotent(self, validation_input):
        """Re-running on unchanged maps reproduces identical flags."""
        store, psm_map, peptide_map, protein_map = validation_input
        engine = ValidationEngine()

        def flags():
            keys = store.spectrum_keys() + store.peptide_keys() + store.protein_keys()
            return {key: store.get_match_parameter(key).validated for key in keys}

        first_summary = engine.validate(store, psm_map, peptide_map, protein_map)
        first = flags()
        second_summary = engine.validate(store, psm_map, peptide_map, protein_map)

        assert flags() == first
        assert second_summary == first_summary

    def test_idempotent_after_pipeline(self, synthetic_run, strict_parameters):
        store, sequence_provider = synthetic_run
        aggregator = HierarchicalAggregator(
            store, strict_parameters, sequence_provider=sequence_provider
        )
        aggregator.process_identifications(aggregator.build_input_map())

        keys = store.spectrum_keys() + store.peptide_keys() + store.protein_keys()
        before = {key: store.get_match_parameter(key).validated for key in keys}
        previous_summary = aggregator.validation_summary
        summary = aggregator.fdr_validation()
        after = {key: store.get_match_parameter(key).validated for key in keys}

        assert after == before
        assert summary == previous_summary

    def test_spectrum_without_parameter_skipped(self, validation_input):
        store, psm_map, peptide_map, protein_map = validation_input
        spectrum_match = SpectrumMatch("run1.mgf", "scan=orphan")
        store.add_spectrum_match(spectrum_match)

        summary = ValidationEngine().validate(store, psm_map, peptide_map, protein_map)
        assert summary.n_validated_psms == 20
        assert not store.has_match_parameter(spectrum_match.key)
