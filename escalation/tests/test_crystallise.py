"""
Tests for crystallising dose-paths into exact operating characteristics.
"""

import copy
import warnings
import pytest
import numpy as np
import pandas as pd

from escalation import (
    ConfigurationError, EmpiricCRM, NumericToleranceWarning, StopAtN,
    StopWhenTooToxic, ThreePlusThree, calculate_probabilities, get_dose_paths
)


SKELETON = [0.05, 0.1, 0.2, 0.3, 0.45]


class TestCalculateProbabilities:
    """Tests for calculate_probabilities."""

    @pytest.fixture
    def paths(self):
        """Two cohorts of three under the 3+3 design."""
        return get_dose_paths(ThreePlusThree(num_doses=5), cohort_sizes=[3, 3])

    @pytest.fixture
    def crystallised(self, paths):
        return calculate_probabilities(paths, true_prob_tox=[0.2, 0.3, 0.4, 0.5, 0.6])

    def test_prob_recommend(self, crystallised):
        """Test exact recommendation probabilities worked out by hand."""
        prob = crystallised.prob_recommend

        assert list(prob.index) == ['NoDose', '1', '2', '3', '4', '5']
        # NTT/TTT at dose 1, or NNT then any toxicity in the expansion
        assert prob['NoDose'] == pytest.approx(0.104 + 0.384 * 0.488)
        # NNN, then >= 2 toxicities at dose 2
        assert prob['1'] == pytest.approx(0.512 * 0.216)
        # NNN then NNT at dose 2, or NNT then NNN at dose 1
        assert prob['2'] == pytest.approx(0.512 * 0.441 + 0.384 * 0.512)
        assert prob['3'] == pytest.approx(0.512 * 0.343)
        assert prob['4'] == 0.0
        assert prob.sum() == pytest.approx(1.0)

    def test_stopping_probabilities(self, crystallised):
        """Test continuance and stopping probabilities."""
        summary = crystallised.summary

        assert summary.prob_continue == pytest.approx(0.512 * 0.343 + 0.512 * 0.441 + 0.384 * 0.512)
        assert summary.prob_stop_with_dose == pytest.approx(0.512 * 0.216)
        assert summary.prob_stop_no_dose == pytest.approx(crystallised.prob_recommend['NoDose'])
        total = summary.prob_continue + summary.prob_stop_with_dose + summary.prob_stop_no_dose
        assert total == pytest.approx(1.0)

    def test_expected_patients_and_toxicities(self, crystallised):
        """Test expected sample size, toxicities and dose allocation."""
        summary = crystallised.summary

        assert summary.expected_num_patients == pytest.approx(3 * 0.104 + 6 * 0.896)
        assert summary.expected_num_tox == pytest.approx(0.6 + 0.512 * 0.9 + 0.384 * 0.6)
        np.testing.assert_allclose(
            summary.prob_administer.values,
            np.array([3 + 3 * 0.384, 3 * 0.512, 0, 0, 0]) / summary.expected_num_patients
        )
        assert summary.prob_administer.sum() == pytest.approx(1.0)

    def test_node_probabilities(self, paths, crystallised):
        """Test the probability of reaching individual nodes."""
        by_history = {n.history: n.node_id for n in paths}

        assert crystallised.node_probabilities[0] == 1.0
        assert crystallised.node_probabilities[by_history['1NNN']] == pytest.approx(0.512)
        assert crystallised.node_probabilities[by_history['1NNN 2NTT']] == \
            pytest.approx(0.512 * 0.189)

    def test_paths(self, paths, crystallised):
        """Test the list of complete paths."""
        assert len(crystallised.paths) == len(paths.leaves())
        assert crystallised.total_prob == pytest.approx(1.0, abs=1e-9)

        by_history = {paths[p.leaf_id].history: p for p in crystallised.paths}
        short = by_history['1TTT']
        assert short.prob == pytest.approx(0.008)
        assert short.final_dose is None
        assert short.status == 'stop_no_dose'
        assert short.num_patients == 3
        assert short.num_tox == 3

        long = by_history['1NNN 2NNT']
        assert long.continues
        assert long.final_dose == 2
        assert long.patients_per_dose.tolist() == [3, 3, 0, 0, 0]

    def test_terminal_frame(self, crystallised):
        """Test the table of complete paths."""
        df = crystallised.terminal_frame()

        assert len(df) == 10
        assert df['prob'].sum() == pytest.approx(1.0)
        assert set(df['status']) == {'continue', 'stop_with_dose', 'stop_no_dose'}
        assert pd.isna(df.loc[df['history'] == '1TTT', 'final_dose'].iloc[0])

    def test_tree_not_modified(self, paths):
        """Test crystallising leaves the dose-paths untouched."""
        before = paths.to_frame()
        calculate_probabilities(paths, true_prob_tox=[0.1] * 5)
        calculate_probabilities(paths, true_prob_tox=[0.9] * 5)

        pd.testing.assert_frame_equal(before, paths.to_frame())

    def test_summary_text(self, crystallised):
        """Test the text summary."""
        text = str(crystallised.summary)
        assert "Probability of continuance" in text
        assert "NoDose" in text


class TestProbabilitiesSumToOne:
    """Tests that complete paths partition the probability space."""

    @pytest.mark.parametrize("true_prob_tox", [
        [0.0, 0.0, 0.0, 0.0, 0.0],
        [0.05, 0.1, 0.2, 0.3, 0.45],
        [0.3, 0.45, 0.6, 0.7, 0.8],
        [1.0, 1.0, 1.0, 1.0, 1.0],
    ])
    def test_three_plus_three(self, true_prob_tox):
        """Test the 3+3 design with de-escalation over four cohorts."""
        paths = get_dose_paths(ThreePlusThree(num_doses=5, allow_deescalate=True),
                               cohort_sizes=[3] * 4)
        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericToleranceWarning)
            x = calculate_probabilities(paths, true_prob_tox)

        assert x.total_prob == pytest.approx(1.0, abs=1e-9)

    def test_crm_with_previous_outcomes(self):
        """Test a CRM tree seeded with outcomes and uneven cohorts."""
        design = StopAtN(EmpiricCRM(SKELETON, target=0.25), n=9)
        paths = get_dose_paths(design, cohort_sizes=[1, 2, 3], previous_outcomes='1NN')
        x = calculate_probabilities(paths, true_prob_tox=[0.1, 0.15, 0.25, 0.4, 0.5])

        assert x.total_prob == pytest.approx(1.0, abs=1e-9)
        # 2 previous + 1 + 2 + 3 patients never reaches n = 9
        assert x.summary.expected_num_patients == pytest.approx(6.0)


class TestToxicityStopping:
    """Tests that toxicity stopping responds to the true rates."""

    @pytest.fixture
    def crm_paths(self):
        design = StopWhenTooToxic(EmpiricCRM(SKELETON, target=0.25), dose=1,
                                  tox_threshold=0.35, confidence=0.9)
        return get_dose_paths(design, cohort_sizes=[3, 3])

    def test_low_no_dose_probability_at_skeleton(self, crm_paths):
        """Test a safe truth rarely stops without a dose."""
        x = calculate_probabilities(crm_paths, true_prob_tox=SKELETON)
        assert x.prob_recommend['NoDose'] < 0.05

    def test_toxic_truth_stops_more(self, crm_paths):
        """Test higher true rates increase the chance of stopping for toxicity."""
        low = calculate_probabilities(crm_paths, true_prob_tox=SKELETON)
        high = calculate_probabilities(crm_paths, true_prob_tox=[0.6, 0.7, 0.8, 0.85, 0.9])

        assert high.prob_recommend['NoDose'] > low.prob_recommend['NoDose']
        assert high.summary.prob_stop_no_dose > low.summary.prob_stop_no_dose

    def test_three_plus_three_monotone(self):
        """Test the 3+3 design stops without a dose more often as toxicity rises."""
        paths = get_dose_paths(ThreePlusThree(num_doses=3), cohort_sizes=[3] * 4)
        no_dose = [
            calculate_probabilities(paths, [p] * 3).prob_recommend['NoDose']
            for p in [0.05, 0.2, 0.4, 0.6]
        ]

        assert no_dose == sorted(no_dose)
        assert no_dose[0] < no_dose[-1]


class TestCalculateProbabilitiesErrors:
    """Tests for invalid crystallisation inputs."""

    @pytest.fixture
    def paths(self):
        return get_dose_paths(ThreePlusThree(num_doses=3), cohort_sizes=[3])

    def test_wrong_length(self, paths):
        """Test that a rate per dose is required."""
        with pytest.raises(ConfigurationError, match="design has 3 doses"):
            calculate_probabilities(paths, [0.1, 0.2])

    def test_out_of_range(self, paths):
        """Test that rates must be probabilities."""
        with pytest.raises(ConfigurationError, match=r"\[0, 1\]"):
            calculate_probabilities(paths, [0.1, 0.2, 1.5])
        with pytest.raises(ConfigurationError):
            calculate_probabilities(paths, [0.1, np.nan, 0.3])

    def test_missing_outcomes_warns(self, paths):
        """Test a tree missing an outcome triggers a tolerance warning."""
        broken = copy.deepcopy(paths)
        broken.root.children.pop('TTT')

        with pytest.warns(NumericToleranceWarning, match="sum to"):
            x = calculate_probabilities(broken, [0.2, 0.3, 0.4])

        assert x.total_prob == pytest.approx(1 - 0.008)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
