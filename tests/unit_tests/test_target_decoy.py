"""Tests for target/decoy posterior error probabilities and FDR cutoffs.

Tests cover:
1. Observations (add/remove, counts)
2. Bin curing
3. Probability estimation and monotonicity
4. FDR score limits
5. Suspicious input flags
"""

import numpy as np
import pytest

from alphashaker.scoring import TargetDecoyMap


def _fill(tdm, targets, decoys):
    for score in targets:
        tdm.add_point(score, is_decoy=False)
    for score in decoys:
        tdm.add_point(score, is_decoy=True)
    return tdm


class TestObservations:
    """Test adding and removing observations."""

    def test_counts(self):
        tdm = _fill(TargetDecoyMap(), [0.1, 0.2, 0.2], [0.5])
        assert tdm.n_target == 3
        assert tdm.n_decoy == 1
        assert len(tdm) == 4

    def test_remove_point(self):
        tdm = _fill(TargetDecoyMap(), [0.1, 0.2], [0.5])
        tdm.remove_point(0.2, is_decoy=False)
        assert tdm.n_target == 1
        assert len(tdm) == 2

        edges, n_target, n_decoy = tdm.get_bins()
        assert 0.2 not in edges

    def test_remove_missing_raises(self):
        """Only an exact (score, label) reversal can be removed."""
        tdm = _fill(TargetDecoyMap(), [0.1], [0.5])
        with pytest.raises(KeyError):
            tdm.remove_point(0.3, is_decoy=False)
        with pytest.raises(KeyError):
            tdm.remove_point(0.1, is_decoy=True)

    def test_add_invalidates_estimation(self):
        tdm = _fill(TargetDecoyMap(min_support=1), [0.1], [0.5])
        tdm.cure()
        assert tdm.is_cured
        tdm.add_point(0.2, is_decoy=False)
        assert not tdm.is_cured


class TestCure:
    """Test merging of sparse score bins."""

    def test_preserves_observation_count(self):
        """Curing merges bins but never drops observations."""
        rng = np.random.default_rng(42)
        for min_support in (1, 3, 10, 50):
            targets = rng.exponential(0.01, size=200)
            decoys = rng.uniform(0.0, 1.0, size=37)
            tdm = _fill(TargetDecoyMap(min_support=min_support), targets, decoys)
            tdm.cure()

            _, bin_target, bin_decoy = tdm.get_bins()
            assert bin_target.sum() == 200
            assert bin_decoy.sum() == 37

    def test_bins_reach_min_support(self):
        rng = np.random.default_rng(7)
        tdm = _fill(
            TargetDecoyMap(min_support=10),
            rng.uniform(0.0, 0.5, size=95),
            rng.uniform(0.3, 1.0, size=23),
        )
        tdm.cure()
        _, bin_target, bin_decoy = tdm.get_bins()
        assert np.all(bin_target + bin_decoy >= 10)

    def test_small_map_single_bin(self):
        """A map with fewer observations than min_support keeps one bin."""
        tdm = _fill(TargetDecoyMap(min_support=10), [0.1, 0.2, 0.3], [0.4])
        tdm.cure()
        edges, bin_target, bin_decoy = tdm.get_bins()
        assert len(edges) == 1
        assert edges[0] == pytest.approx(0.4)
        assert bin_target[0] == 3
        assert bin_decoy[0] == 1

    def test_remainder_merged_into_last_bin(self):
        tdm = _fill(TargetDecoyMap(min_support=2), [0.1, 0.2, 0.3], [])
        tdm.cure()
        edges, bin_target, _ = tdm.get_bins()
        np.testing.assert_allclose(edges, [0.3])
        assert list(bin_target) == [3]

        tdm = _fill(TargetDecoyMap(min_support=2), [0.1, 0.2, 0.3, 0.4, 0.5], [])
        tdm.cure()
        edges, bin_target, _ = tdm.get_bins()
        np.testing.assert_allclose(edges, [0.2, 0.5])
        assert list(bin_target) == [2, 3]

    def test_empty_map(self):
        tdm = TargetDecoyMap()
        tdm.cure()
        tdm.estimate_probabilities()
        assert tdm.get_probability(0.5) == 1.0


class TestProbabilities:
    """Test posterior error probability estimation."""

    def test_local_ratio(self):
        tdm = _fill(TargetDecoyMap(min_support=4), [0.1, 0.2, 0.3, 0.5, 0.6], [0.4, 0.7, 0.8])
        tdm.cure()
        tdm.estimate_probabilities()

        # Bins: [0.1..0.4] 3 targets + 1 decoy, [0.5..0.8] 2 targets + 2 decoys
        assert tdm.get_probability(0.1) == pytest.approx(0.25)
        assert tdm.get_probability(0.4) == pytest.approx(0.25)
        assert tdm.get_probability(0.45) == pytest.approx(0.5)
        assert tdm.get_probability(0.8) == pytest.approx(0.5)

    def test_running_maximum(self):
        """A worse score never gets a lower probability than a better one."""
        tdm = _fill(TargetDecoyMap(min_support=1), [0.1, 0.2, 0.4], [0.3])
        tdm.cure()
        tdm.estimate_probabilities()
        assert tdm.get_probability(0.1) == 0.0
        assert tdm.get_probability(0.3) == 1.0
        assert tdm.get_probability(0.4) == 1.0

    def test_beyond_worst_bin(self):
        tdm = _fill(TargetDecoyMap(min_support=1), [0.1], [0.2])
        tdm.estimate_probabilities()
        assert tdm.get_probability(5.0) == 1.0

    def test_lazy_estimation(self):
        tdm = _fill(TargetDecoyMap(min_support=1), [0.1], [0.2])
        assert tdm.get_probability(0.1) == 0.0

    @pytest.mark.parametrize("min_support", [1, 5, 20])
    def test_monotonicity(self, min_support):
        """Probabilities are non-decreasing with worsening score."""
        rng = np.random.default_rng(min_support)
        targets = np.concatenate([rng.exponential(0.01, 500), rng.uniform(0, 1, 100)])
        decoys = rng.uniform(0, 1, 150)
        tdm = _fill(TargetDecoyMap(min_support=min_support), targets, decoys)
        tdm.cure()
        tdm.estimate_probabilities()

        grid = np.linspace(0.0, 1.2, 500)
        probabilities = np.array([tdm.get_probability(s) for s in grid])
        assert np.all(np.diff(probabilities) >= 0)
        assert np.all((probabilities >= 0) & (probabilities <= 1))


class TestScoreLimit:
    """Test FDR score cutoffs."""

    def test_clean_separation(self):
        """990 targets better than 10 decoys validate exactly the targets at 1% FDR."""
        targets = np.linspace(1e-6, 1e-3, 990)
        decoys = np.linspace(0.1, 1.0, 10)
        tdm = _fill(TargetDecoyMap(), targets, decoys)

        limit = tdm.get_score_limit(0.01)

        assert not tdm.no_validated()
        assert np.sum(targets <= limit) == 990
        assert np.sum(decoys <= limit) == 0

    def test_limit_at_target_scores_only(self):
        """Trailing decoys never open the threshold."""
        tdm = _fill(TargetDecoyMap(), [0.1, 0.2], [0.3])
        limit = tdm.get_score_limit(0.5)
        assert limit == pytest.approx(0.2)

    def test_interleaved(self):
        # cumulative decoy/target at targets: 0/1, 1/2, 1/3, 2/4
        tdm = _fill(TargetDecoyMap(), [0.1, 0.3, 0.4, 0.6], [0.2, 0.5])
        assert tdm.get_score_limit(0.4) == pytest.approx(0.4)
        assert tdm.get_score_limit(0.5) == pytest.approx(0.6)
        assert tdm.get_score_limit(0.0) == pytest.approx(0.1)

    def test_no_validated(self):
        tdm = _fill(TargetDecoyMap(), [0.5], [0.1, 0.2])
        limit = tdm.get_score_limit(0.01)
        assert tdm.no_validated()
        assert limit == -np.inf

    def test_empty_map(self):
        tdm = TargetDecoyMap()
        tdm.get_score_limit(0.01)
        assert tdm.no_validated()

    def test_invalid_fdr(self):
        tdm = _fill(TargetDecoyMap(), [0.1], [])
        with pytest.raises(ValueError):
            tdm.get_score_limit(1.5)


class TestSuspiciousInput:
    """Test the advisory separation flag."""

    def test_n_max(self):
        tdm = _fill(TargetDecoyMap(), [0.1, 0.2, 0.3, 0.5], [0.4])
        assert tdm.n_max == 3

    def test_no_decoys(self):
        tdm = _fill(TargetDecoyMap(suspicious_n_max=1), [0.1, 0.2], [])
        assert tdm.suspicious_input()

    def test_few_targets_before_decoy(self):
        tdm = _fill(TargetDecoyMap(suspicious_n_max=5), [0.1, 0.2, 0.5], [0.3])
        assert tdm.suspicious_input()

    def test_robust_map(self):
        tdm = _fill(TargetDecoyMap(suspicious_n_max=100), np.linspace(0, 0.1, 200), [0.5])
        assert not tdm.suspicious_input()
