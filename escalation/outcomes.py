"""
Parsing of phase I outcome strings.

The outcome string describes the doses given, the outcomes observed and
groups patients into cohorts. The letters T and N represent patients that
experienced (T)oxicity and (N)o toxicity. They are concatenated after a
numerical dose-level to convey the outcomes of one cohort, so ``2NNT`` is a
cohort of three patients treated at dose-level 2, one of whom had toxicity.
Cohorts are separated by whitespace: ``2NNT 1NN`` extends that example with
a cohort of two treated at dose-level 1, neither with toxicity.

References
----------
Brock, K. (2019). trialr: Bayesian Clinical Trial Designs in R and Stan.
arXiv:1907.00161 [stat.CO]
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union
import re
import numpy as np
import pandas as pd

from .errors import ParseError


TOXICITY = 'T'
NO_TOXICITY = 'N'
OUTCOME_LETTERS = (NO_TOXICITY, TOXICITY)

_DOSE_RE = re.compile(r'^([0-9]*)(.*)$')
_WHITESPACE = ' \t\n\r\f\v'
_SEPARATOR_RE = re.compile(r'[ \t\n\r\f\v]+')


def _parse_token(token: str) -> Tuple[int, str]:
    """Split one cohort token such as ``'2NTN'`` into ``(2, 'NTN')``."""
    dose_str, letters = _DOSE_RE.match(token).groups()
    if not dose_str:
        raise ParseError(f"Cohort '{token}' does not start with a dose-level", token)
    dose = int(dose_str)
    if dose < 1:
        raise ParseError(f"Dose-level in cohort '{token}' must be positive", token)
    if not letters:
        raise ParseError(f"Cohort '{token}' has no patient outcomes", token)
    bad = sorted(set(letters) - set(OUTCOME_LETTERS))
    if bad:
        raise ParseError(
            f"Cohort '{token}' contains invalid outcome(s) {', '.join(bad)}; "
            f"only {TOXICITY} and {NO_TOXICITY} are allowed", token
        )
    return dose, letters


def phase1_outcomes_to_cohorts(outcomes: str) -> List[Tuple[int, str]]:
    """
    Break an outcome string into its cohorts.

    Parameters
    ----------
    outcomes : str
        Outcome string, e.g. ``'1NNN 2NTN'``

    Returns
    -------
    list of (int, str)
        ``(dose, letters)`` for each cohort, in order
    """
    if not isinstance(outcomes, str):
        raise ParseError(f"Outcomes must be a string, not {type(outcomes).__name__}")
    return [_parse_token(token) for token in _SEPARATOR_RE.split(outcomes) if token]


@dataclass
class ParsedOutcomes:
    """
    Per-patient representation of an outcome string.

    Attributes
    ----------
    cohort : np.ndarray
        Cohort id of each patient, starting at 1
    patient : np.ndarray
        Patient id, 1 to num_patients
    dose : np.ndarray
        Dose-level given to each patient
    tox : np.ndarray
        1 if the patient had toxicity, else 0
    """
    cohort: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))
    patient: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))
    dose: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))
    tox: np.ndarray = field(default_factory=lambda: np.array([], dtype=int))

    @property
    def num_patients(self) -> int:
        return int(len(self.dose))

    @property
    def num_cohorts(self) -> int:
        return int(self.cohort.max()) if self.num_patients else 0

    def cohorts(self) -> Iterator[Tuple[int, str]]:
        """Yield ``(dose, letters)`` for each cohort."""
        for cohort_id in range(1, self.num_cohorts + 1):
            mask = self.cohort == cohort_id
            letters = ''.join(TOXICITY if t else NO_TOXICITY for t in self.tox[mask])
            yield int(self.dose[mask][0]), letters

    def to_frame(self) -> pd.DataFrame:
        """One row per patient with columns cohort, patient, dose, tox."""
        return pd.DataFrame({
            'cohort': self.cohort,
            'patient': self.patient,
            'dose': self.dose,
            'tox': self.tox,
        })


def parse_phase1_outcomes(outcomes: str,
                          as_list: bool = True) -> Union[ParsedOutcomes, pd.DataFrame]:
    """
    Parse a string of phase I dose-finding outcomes to vector notation.

    Parameters
    ----------
    outcomes : str
        Doses given and outcomes observed, e.g. ``'1NNN 2NTN 3TTT'``
    as_list : bool
        True (the default) to return a ParsedOutcomes record,
        False to return a DataFrame

    Returns
    -------
    ParsedOutcomes or pd.DataFrame

    Examples
    --------
    >>> x = parse_phase1_outcomes('1NNN 2NTN 3TTT')
    >>> x.num_patients
    9
    >>> x.tox.tolist()
    [0, 0, 0, 0, 1, 0, 1, 1, 1]
    """
    cohort_ids: List[int] = []
    doses: List[int] = []
    tox: List[int] = []

    for cohort_id, (dose, letters) in enumerate(phase1_outcomes_to_cohorts(outcomes), start=1):
        these_tox = [int(letter == TOXICITY) for letter in letters]
        tox.extend(these_tox)
        doses.extend([dose] * len(these_tox))
        cohort_ids.extend([cohort_id] * len(these_tox))

    parsed = ParsedOutcomes(
        cohort=np.array(cohort_ids, dtype=int),
        patient=np.arange(1, len(doses) + 1, dtype=int),
        dose=np.array(doses, dtype=int),
        tox=np.array(tox, dtype=int),
    )
    return parsed if as_list else parsed.to_frame()


def phase1_outcomes_to_string(parsed: Union[ParsedOutcomes, pd.DataFrame]) -> str:
    """
    Convert parsed outcomes back to outcome-string notation.

    Parameters
    ----------
    parsed : ParsedOutcomes or pd.DataFrame
        Output of parse_phase1_outcomes

    Returns
    -------
    str
        Cohorts separated by single spaces
    """
    if isinstance(parsed, pd.DataFrame):
        parsed = ParsedOutcomes(
            cohort=parsed['cohort'].to_numpy(dtype=int),
            patient=parsed['patient'].to_numpy(dtype=int),
            dose=parsed['dose'].to_numpy(dtype=int),
            tox=parsed['tox'].to_numpy(dtype=int),
        )
    return ' '.join(f"{dose}{letters}" for dose, letters in parsed.cohorts())


def append_cohort(outcomes: str, dose: int, letters: str) -> str:
    """Append a cohort treated at ``dose`` to an outcome string."""
    cohort = f"{dose}{letters}"
    outcomes = outcomes.strip(_WHITESPACE)
    return f"{outcomes} {cohort}" if outcomes else cohort
