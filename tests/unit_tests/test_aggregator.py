"""Tests for the hierarchical PSM → peptide → protein aggregation pipeline.

Uses the synthetic run of ``conftest.py``: every target scores better than
every decoy, so target probabilities are 0 and decoy probabilities are 1.
"""

import pytest

from alphashaker.parameters import ValidationParameters
from alphashaker.progress import WaitingHandler
from alphashaker.ptm import ConfidenceTier
from alphashaker.validation import HierarchicalAggregator


@pytest.fixture
def processed_run(synthetic_run, strict_parameters):
    store, sequence_provider = synthetic_run
    aggregator = HierarchicalAggregator(
        store, strict_parameters, sequence_provider=sequence_provider
    )
    waiting_handler = WaitingHandler()
    aggregator.process_identifications(aggregator.build_input_map(), waiting_handler)
    return aggregator, waiting_handler


class CancelOnReport(WaitingHandler):
    """Cancels the run when a given report line is appended."""

    def __init__(self, line):
        super().__init__()
        self.line = line

    def append_report(self, line):
        super().append_report(line)
        if line == self.line:
            self.cancel()


class TestInputMap:
    """Test the search engine level."""

    def test_build_input_map(self, synthetic_run, strict_parameters):
        store, sequence_provider = synthetic_run
        aggregator = HierarchicalAggregator(store, strict_parameters)
        input_map = aggregator.build_input_map()

        assert input_map.advocates() == [1]
        assert input_map.get_target_decoy_map(1).n_target == 32
        assert input_map.get_target_decoy_map(1).n_decoy == 10

    def test_assumption_probabilities(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        spectrum_match = store.get_spectrum_match("run2.mgf_cus_scan=31")
        first, second = spectrum_match.get_all_assumptions()

        assert first.search_engine_probability == 0.0
        assert second.search_engine_probability == 1.0


class TestPsmLevel:
    """Test consensus and PSM probabilities."""

    def test_best_assumption(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        spectrum_match = store.get_spectrum_match("run2.mgf_cus_scan=1")
        parameter = store.get_match_parameter(spectrum_match.key)

        assert spectrum_match.best_assumption is spectrum_match.get_first_hit(1)
        assert parameter.specific_map_key == "2"
        assert parameter.probability_score == spectrum_match.best_assumption.score
        assert parameter.probability == 0.0

    def test_decoy_probability(self, processed_run):
        aggregator, _ = processed_run
        parameter = aggregator.store.get_match_parameter("run1.mgf_cus_scan=34")
        assert parameter.probability == 1.0
        assert not parameter.validated

    def test_protein_count_cleared(self, synthetic_run, strict_parameters):
        store, sequence_provider = synthetic_run
        aggregator = HierarchicalAggregator(
            store, strict_parameters, sequence_provider=sequence_provider
        )
        aggregator.set_protein_count_map({"P0": 5})
        aggregator.process_identifications(aggregator.build_input_map())
        assert aggregator.protein_count == {}


class TestPeptideAndProteinLevel:
    """Test peptide and protein construction and scores."""

    def test_peptides_built(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        assert len(store.peptide_keys()) == 42
        assert "PEPSTIDEK_Phospho" in store

    def test_peptide_map_keys(self, processed_run):
        aggregator, _ = processed_run
        assert aggregator.peptide_map.keys() == ["Phospho", "unmodified"]
        parameter = aggregator.store.get_match_parameter("PEPSTIDEK_Phospho")
        assert parameter.specific_map_key == "Phospho"
        assert aggregator.metrics.found_modifications == ["Phospho"]

    def test_fraction_scores(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        peptide_key = store.get_spectrum_match("run1.mgf_cus_scan=0").best_assumption.peptide.key
        parameter = store.get_match_parameter(peptide_key)

        assert parameter.fraction_scores == {"run1.mgf": 0.0}
        assert parameter.fraction_pep == {"run1.mgf": 0.0}
        assert store.get_match_parameter("P0").fractions() == ["run1.mgf", "run2.mgf"]

    def test_shared_group_merged(self, processed_run):
        aggregator, waiting_handler = processed_run
        store = aggregator.store

        assert "P0 P1" not in store
        assert "SHAREDPEPK" in store.get_protein_match("P0").peptide_keys
        assert "SHAREDPEPK" in store.get_protein_match("P1").peptide_keys
        assert len(aggregator.protein_map) == 21
        assert "1 conflicts resolved. 0 protein groups remaining (0 suspicious)." in (
            waiting_handler.report
        )

    def test_protein_probabilities(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        assert store.get_match_parameter("P0").probability == 0.0
        assert store.get_match_parameter("DECOY_P0").probability == 1.0

    def test_metrics(self, processed_run):
        aggregator, _ = processed_run
        metrics = aggregator.metrics

        assert metrics.protein_keys == [f"P{k}" for k in range(10)] + ["Q9PHOS"]
        assert metrics.max_n_peptides == 4
        assert metrics.max_n_spectra == 4
        assert metrics.max_mw > 0
        assert metrics.n_validated_proteins == 11


class TestValidationAndPtm:
    """Test the validation and localization stages of the pipeline."""

    def test_validated_counts(self, processed_run):
        aggregator, _ = processed_run
        summary = aggregator.validation_summary

        assert summary.n_validated_psms == 32
        assert summary.n_validated_peptides == 32
        assert summary.n_validated_proteins == 11

    def test_spectrum_ptm_scores(self, processed_run):
        aggregator, _ = processed_run
        spectrum_match = aggregator.store.get_spectrum_match("run2.mgf_cus_scan=31")
        scoring = spectrum_match.ptm_scores.get_ptm_scoring("Phospho")

        assert scoring.get_delta_score([4]) == pytest.approx(100.0)
        assert scoring.confidence == ConfidenceTier.CONFIDENT

    def test_peptide_and_protein_sites(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        peptide_scores = store.get_peptide_match("PEPSTIDEK_Phospho").ptm_scores
        protein_scores = store.get_protein_match("Q9PHOS").ptm_scores

        assert peptide_scores.get_main_sites("Phospho") == [4]
        assert protein_scores.get_main_sites("Phospho") == [6]
        assert protein_scores.get_secondary_sites("Phospho") == []

    def test_second_run_keeps_ptm_scores(self, processed_run):
        """Processing the same store again reproduces the localization scores."""
        aggregator, _ = processed_run
        store = aggregator.store
        aggregator.process_identifications(aggregator.build_input_map(), WaitingHandler())

        scoring = store.get_spectrum_match("run2.mgf_cus_scan=31").ptm_scores.get_ptm_scoring(
            "Phospho"
        )
        assert scoring.delta_scores == pytest.approx({(4,): 100.0})
        assert scoring.confidence == ConfidenceTier.CONFIDENT
        peptide_scores = store.get_peptide_match("PEPSTIDEK_Phospho").ptm_scores
        assert peptide_scores.get_main_sites("Phospho") == [4]
        assert store.get_protein_match("Q9PHOS").ptm_scores.get_main_sites("Phospho") == [6]

    def test_report(self, processed_run):
        aggregator, waiting_handler = processed_run
        assert waiting_handler.finished
        assert waiting_handler.report[-1] == "Identification processing completed."
        assert waiting_handler.primary_progress == 15
        assert aggregator.store.flush() == 0

    def test_detailed_report(self, synthetic_run):
        store, sequence_provider = synthetic_run
        parameters = ValidationParameters(min_support=1, min_group_size=0, detailed_report=True)
        aggregator = HierarchicalAggregator(store, parameters, sequence_provider=sequence_provider)
        waiting_handler = WaitingHandler()
        aggregator.process_identifications(aggregator.build_input_map(), waiting_handler)

        report = waiting_handler.get_report()
        assert "Advocate 1 identifications." in report
        assert "2 charged spectra." in report
        assert "Phospho, unmodified modified peptides." in report
        assert "proteins." in report


class TestIncrementalProcessing:
    """Test the map changed hooks."""

    def test_peptide_map_changed(self, processed_run):
        """Protein scores follow a change of the peptide map."""
        aggregator, _ = processed_run
        store = aggregator.store
        aggregator.peptide_map.add_point("unmodified", 0.0, is_decoy=True)
        aggregator.peptide_map_changed()

        pep = 1 / 32
        peptide_parameter = store.get_match_parameter("SHAREDPEPK")
        assert peptide_parameter.probability == pytest.approx(pep)

        parameter = store.get_match_parameter("P2")
        assert parameter.probability_score == pytest.approx(pep ** 3)
        assert parameter.fraction_scores["run1.mgf"] == pytest.approx(pep ** 2)
        assert parameter.fraction_scores["run2.mgf"] == pytest.approx(pep)
        assert store.get_match_parameter("P0").probability_score == pytest.approx(pep ** 4)
        assert store.get_match_parameter("Q9PHOS").probability_score == 0.0
        assert parameter.probability == 0.0

    def test_protein_map_changed(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        aggregator.protein_map.add_point(0.0, is_decoy=True)
        aggregator.protein_map_changed()

        assert store.get_match_parameter("P5").probability == pytest.approx(1 / 12)

    def test_spectrum_map_changed(self, processed_run):
        aggregator, _ = processed_run
        store = aggregator.store
        n_peptides = len(store.peptide_keys())
        aggregator.spectrum_map_changed()

        assert len(store.peptide_keys()) == n_peptides
        assert "P0 P1" not in store
        assert store.get_match_parameter("P0").probability == 0.0


class TestCancellation:
    """Test cooperative cancellation."""

    def test_cancel_keeps_committed_data(self, synthetic_run, strict_parameters):
        store, sequence_provider = synthetic_run
        aggregator = HierarchicalAggregator(
            store, strict_parameters, sequence_provider=sequence_provider
        )
        waiting_handler = CancelOnReport("Generating peptide map.")
        aggregator.process_identifications(aggregator.build_input_map(), waiting_handler)

        assert not waiting_handler.finished
        assert "Identification processing completed." not in waiting_handler.report
        assert waiting_handler.primary_progress == 6

        # PSM probabilities and peptide matches of the completed stages remain
        assert store.get_match_parameter("run1.mgf_cus_scan=0").probability == 0.0
        assert len(store.peptide_keys()) == 42
        assert aggregator.validation_summary is None

    def test_canceled_before_start(self, synthetic_run, strict_parameters):
        store, _ = synthetic_run
        aggregator = HierarchicalAggregator(store, strict_parameters)
        waiting_handler = WaitingHandler()
        waiting_handler.cancel()
        aggregator.process_identifications(aggregator.build_input_map(), waiting_handler)

        assert waiting_handler.report == []
        assert not store.has_match_parameter("run1.mgf_cus_scan=0")
