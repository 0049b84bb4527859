"""
Tests for outcome-string parsing.
"""

import pytest
import numpy as np
import pandas as pd

from escalation import (
    ParseError, parse_phase1_outcomes, phase1_outcomes_to_cohorts,
    phase1_outcomes_to_string
)


class TestParsePhase1Outcomes:
    """Tests for parse_phase1_outcomes."""

    def test_three_cohorts(self):
        """Test the documented three-cohort example."""
        x = parse_phase1_outcomes('1NNN 2NTN 3TTT')

        assert x.num_patients == 9
        assert x.dose.tolist() == [1, 1, 1, 2, 2, 2, 3, 3, 3]
        assert x.tox.tolist() == [0, 0, 0, 0, 1, 0, 1, 1, 1]
        assert x.tox.sum() == 4
        assert x.cohort.tolist() == [1, 1, 1, 2, 2, 2, 3, 3, 3]
        assert x.patient.tolist() == list(range(1, 10))

    def test_empty_string(self):
        """Test that an empty string gives no patients."""
        for outcomes in ['', '   ']:
            x = parse_phase1_outcomes(outcomes)
            assert x.num_patients == 0
            assert x.num_cohorts == 0
            assert len(x.dose) == 0
            assert len(x.tox) == 0

    def test_patient_ids_contiguous(self):
        """Test patient ids run 1..n across cohorts of different sizes."""
        x = parse_phase1_outcomes('2N 2TN 1NNNN 3T')

        assert x.num_patients == 8
        np.testing.assert_array_equal(x.patient, np.arange(1, 9))
        assert x.cohort.tolist() == [1, 2, 2, 3, 3, 3, 3, 4]

    def test_multi_digit_dose_and_extra_whitespace(self):
        """Test dose-levels above 9 and repeated whitespace."""
        x = parse_phase1_outcomes('  10NT \t 12TTN  ')

        assert x.dose.tolist() == [10, 10, 12, 12, 12]
        assert x.tox.tolist() == [0, 1, 1, 1, 0]

    def test_as_data_frame(self):
        """Test parsing to a DataFrame."""
        df = parse_phase1_outcomes('1NNN 2NTN', as_list=False)

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['cohort', 'patient', 'dose', 'tox']
        assert len(df) == 6
        assert df['tox'].tolist() == [0, 0, 0, 0, 1, 0]

    def test_cohorts(self):
        """Test recovering cohorts from parsed outcomes."""
        x = parse_phase1_outcomes('1NNN 2NTN 2T')

        assert list(x.cohorts()) == [(1, 'NNN'), (2, 'NTN'), (2, 'T')]
        assert phase1_outcomes_to_cohorts('1NNN 2NTN 2T') == [(1, 'NNN'), (2, 'NTN'), (2, 'T')]


class TestParseErrors:
    """Tests for malformed outcome strings."""

    def test_missing_dose(self):
        """Test that a cohort without a dose-level raises error."""
        with pytest.raises(ParseError, match="does not start with a dose-level") as e:
            parse_phase1_outcomes('1NNN NTN')
        assert e.value.token == 'NTN'

    def test_missing_outcomes(self):
        """Test that a dose-level without outcomes raises error."""
        with pytest.raises(ParseError, match="no patient outcomes") as e:
            parse_phase1_outcomes('1NNN 2')
        assert e.value.token == '2'

    def test_invalid_letter(self):
        """Test that letters other than T and N raise error."""
        with pytest.raises(ParseError, match="invalid outcome") as e:
            parse_phase1_outcomes('1NNE')
        assert e.value.token == '1NNE'

    def test_lower_case_rejected(self):
        """Test that outcome letters are case-sensitive."""
        with pytest.raises(ParseError):
            parse_phase1_outcomes('1nnt')

    def test_zero_dose(self):
        """Test that dose-level 0 raises error."""
        with pytest.raises(ParseError, match="must be positive"):
            parse_phase1_outcomes('0NN')

    def test_digits_after_outcomes(self):
        """Test that cohorts must be separated by whitespace."""
        with pytest.raises(ParseError) as e:
            parse_phase1_outcomes('1NN2TT')
        assert e.value.token == '1NN2TT'

    def test_non_ascii_digits_rejected(self):
        """Test that dose-levels must be written with the digits 0-9."""
        with pytest.raises(ParseError, match="does not start with a dose-level") as e:
            parse_phase1_outcomes('٣NNN')
        assert e.value.token == '٣NNN'
        with pytest.raises(ParseError):
            parse_phase1_outcomes('1NNN ２NTN')

    def test_non_ascii_whitespace_not_a_separator(self):
        """Test that only ASCII whitespace separates cohorts."""
        with pytest.raises(ParseError, match="invalid outcome"):
            parse_phase1_outcomes('1NNN\u00a02NTN')
        assert parse_phase1_outcomes('1NNN\t2NTN\n').num_patients == 6

    def test_parse_error_is_value_error(self):
        """Test that ParseError can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse_phase1_outcomes('X')

    def test_not_a_string(self):
        """Test that non-string input raises error."""
        with pytest.raises(ParseError, match="must be a string"):
            parse_phase1_outcomes(None)


class TestOutcomesToString:
    """Tests for converting parsed outcomes back to strings."""

    def test_round_trip(self):
        """Test that parse -> string -> parse is idempotent."""
        for outcomes in ['1NNN 2NTN 3TTT', '2N 2TN 1NNNN', '']:
            x = parse_phase1_outcomes(outcomes)
            s = phase1_outcomes_to_string(x)
            assert s == outcomes
            y = parse_phase1_outcomes(s)
            np.testing.assert_array_equal(x.dose, y.dose)
            np.testing.assert_array_equal(x.tox, y.tox)
            np.testing.assert_array_equal(x.cohort, y.cohort)

    def test_normalises_whitespace(self):
        """Test that the string form uses single spaces."""
        x = parse_phase1_outcomes('  1NNN    2NTN ')
        assert phase1_outcomes_to_string(x) == '1NNN 2NTN'

    def test_from_data_frame(self):
        """Test converting a DataFrame back to a string."""
        df = parse_phase1_outcomes('1NNN 2NTN', as_list=False)
        assert phase1_outcomes_to_string(df) == '1NNN 2NTN'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
