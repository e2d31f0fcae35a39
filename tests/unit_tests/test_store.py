"""Tests for the identification store (two-phase writes, cache, spill)."""

import pytest

from alphashaker.exceptions import MissingMatchError, StoreError
from alphashaker.identification import (
    IdentificationStore,
    MatchParameter,
    Peptide,
    PeptideAssumption,
    PeptideMatch,
    ProteinMatch,
    SpectrumMatch,
)


def _spectrum_match(index):
    spectrum_match = SpectrumMatch("run1.mgf", f"scan={index}")
    spectrum_match.add_assumption(
        PeptideAssumption(1, 1, Peptide("PEPTIDEK", parent_proteins=["P1"]), 2, 0.01)
    )
    return spectrum_match


class TestKeys:
    """Test enumeration and lookups."""

    def test_enumeration_by_kind(self):
        store = IdentificationStore()
        store.add_spectrum_match(_spectrum_match(1))
        store.add_peptide_match(PeptideMatch(Peptide("PEPTIDEK")))
        store.add_protein_match(ProteinMatch(["P2", "P1"]))

        assert store.spectrum_keys() == ["run1.mgf_cus_scan=1"]
        assert store.peptide_keys() == ["PEPTIDEK"]
        assert store.protein_keys() == ["P1 P2"]
        assert "P1 P2" in store

    def test_wrong_kind(self):
        store = IdentificationStore()
        store.add_peptide_match(PeptideMatch(Peptide("PEPTIDEK")))
        with pytest.raises(MissingMatchError):
            store.get_protein_match("PEPTIDEK")

    def test_missing_key_is_key_error(self):
        store = IdentificationStore()
        with pytest.raises(KeyError):
            store.get_spectrum_match("run1.mgf_cus_scan=404")

    def test_duplicate_add(self):
        store = IdentificationStore()
        store.add_spectrum_match(_spectrum_match(1))
        with pytest.raises(ValueError):
            store.add_spectrum_match(_spectrum_match(1))

    def test_remove_match(self):
        store = IdentificationStore()
        store.add_protein_match(ProteinMatch(["P1"]))
        store.add_match_parameter("P1", MatchParameter(probability_score=0.1))
        store.remove_match("P1")

        assert store.protein_keys() == []
        assert not store.has_match_parameter("P1")
        with pytest.raises(MissingMatchError):
            store.remove_match("P1")


class TestMatchParameters:
    """Test match parameter storage."""

    def test_add_get(self):
        store = IdentificationStore()
        store.add_protein_match(ProteinMatch(["P1"]))
        store.add_match_parameter("P1", MatchParameter(probability_score=0.1, probability=0.2))
        parameter = store.get_match_parameter("P1")
        assert parameter.probability_score == 0.1
        assert parameter.confidence == pytest.approx(80.0)

    def test_parameter_for_unknown_match(self):
        with pytest.raises(MissingMatchError):
            IdentificationStore().add_match_parameter("P1", MatchParameter())


class TestCommits:
    """Test dirty marking, flush and eviction."""

    def test_flush_counts_dirty(self):
        store = IdentificationStore()
        store.add_spectrum_match(_spectrum_match(1))
        store.add_spectrum_match(_spectrum_match(2))
        assert store.flush() == 2
        assert store.flush() == 0

        match = store.get_spectrum_match("run1.mgf_cus_scan=1")
        store.set_match_changed(match)
        assert store.flush() == 1

    def test_bounded_cache_requires_directory(self):
        with pytest.raises(ValueError):
            IdentificationStore(cache_size=10)

    def test_eviction_round_trip(self, tmp_path):
        """Evicted matches are read back from the spill directory."""
        store = IdentificationStore(cache_size=2, spill_directory=tmp_path / "matches")
        for index in range(5):
            store.add_spectrum_match(_spectrum_match(index))
        store.flush()

        match = store.get_spectrum_match("run1.mgf_cus_scan=0")
        match.best_assumption = match.get_first_hit(1)
        store.set_match_changed(match)
        store.flush()

        for index in range(1, 5):
            store.get_spectrum_match(f"run1.mgf_cus_scan={index}")

        reloaded = store.get_spectrum_match("run1.mgf_cus_scan=0")
        assert reloaded is not match
        assert reloaded.best_assumption.peptide.key == "PEPTIDEK"
        assert reloaded.best_assumption.score == 0.01

    def test_dirty_matches_stay_in_memory(self, tmp_path):
        store = IdentificationStore(cache_size=1, spill_directory=tmp_path)
        store.add_spectrum_match(_spectrum_match(0))
        store.add_spectrum_match(_spectrum_match(1))

        match = store.get_spectrum_match("run1.mgf_cus_scan=0")
        assert match.key == "run1.mgf_cus_scan=0"
        assert list(tmp_path.iterdir()) == []

    def test_remove_spilled_match(self, tmp_path):
        store = IdentificationStore(cache_size=1, spill_directory=tmp_path)
        store.add_spectrum_match(_spectrum_match(0))
        store.add_spectrum_match(_spectrum_match(1))
        store.flush()
        n_files = len(list(tmp_path.iterdir()))

        store.remove_match("run1.mgf_cus_scan=0")
        assert len(list(tmp_path.iterdir())) == n_files - 1

    def test_corrupted_spill_file(self, tmp_path):
        store = IdentificationStore(cache_size=1, spill_directory=tmp_path)
        store.add_spectrum_match(_spectrum_match(0))
        store.add_spectrum_match(_spectrum_match(1))
        store.flush()
        for path in tmp_path.iterdir():
            path.write_bytes(b"not a pickle")

        with pytest.raises(StoreError):
            store.get_spectrum_match("run1.mgf_cus_scan=0")
