"""
Enumeration of cohort outcomes and dose-path node counts.

Dose-finding models only use the number of toxicities at each dose, not the
order in which patients experienced them, so a cohort of n patients with
binary outcomes has n + 1 distinguishable results rather than 2^n. Each
result is represented once, in a canonical order (no-toxicity letters
first), together with the number of orderings it stands for.
"""

from dataclasses import dataclass
from itertools import combinations_with_replacement
from typing import List, Optional, Sequence, Tuple
import numpy as np
from scipy.special import comb
from scipy.stats import binom

from .errors import ConfigurationError
from .outcomes import NO_TOXICITY, TOXICITY


@dataclass(frozen=True)
class OutcomeCombination:
    """
    One distinguishable outcome for a cohort.

    Attributes
    ----------
    outcomes : str
        Canonical outcome letters, e.g. ``'NNT'``
    counts : tuple of int
        Number of patients with each outcome category, in alphabet order
    multiplicity : int
        Number of patient orderings that produce these counts
    """
    outcomes: str
    counts: Tuple[int, ...]
    multiplicity: int

    @property
    def cohort_size(self) -> int:
        return len(self.outcomes)

    @property
    def num_tox(self) -> int:
        return self.outcomes.count(TOXICITY)


def _multinomial(counts: Sequence[int]) -> int:
    total = 0
    result = 1
    for c in counts:
        total += c
        result *= int(comb(total, c, exact=True))
    return result


# letters for outcome categories beyond no-toxicity and toxicity
_EXTRA_LETTERS = 'ABCDEFGHIJKLMOPQRSUVWXYZ'


def outcome_alphabet(num_patient_outcomes: int = 2) -> str:
    """
    Letters for ``num_patient_outcomes`` outcome categories.

    The binary alphabet is ``'NT'``. Extra categories are lettered from
    ``A`` and sit between no-toxicity and toxicity, e.g. ``'NABT'`` for four.
    """
    if isinstance(num_patient_outcomes, bool) or int(num_patient_outcomes) != num_patient_outcomes \
            or not 2 <= num_patient_outcomes <= len(_EXTRA_LETTERS) + 2:
        raise ConfigurationError(
            f"num_patient_outcomes must be an integer from 2 to {len(_EXTRA_LETTERS) + 2}")
    return NO_TOXICITY + _EXTRA_LETTERS[:int(num_patient_outcomes) - 2] + TOXICITY


def cohort_outcome_combinations(cohort_size: int,
                                num_patient_outcomes: int = 2,
                                outcome_letters: Optional[str] = None) -> List[OutcomeCombination]:
    """
    List the distinguishable outcomes of a cohort.

    Parameters
    ----------
    cohort_size : int
        Number of patients in the cohort
    num_patient_outcomes : int
        Number of outcome categories per patient, 2 for toxicity only
    outcome_letters : str, optional
        One letter per outcome category, overriding the alphabet built from
        ``num_patient_outcomes``

    Returns
    -------
    list of OutcomeCombination
        C(n + k - 1, k - 1) combinations, fewest toxicities first for
        binary outcomes
    """
    if int(cohort_size) != cohort_size or cohort_size < 1:
        raise ConfigurationError(f"Invalid cohort size: {cohort_size}")
    if outcome_letters is None:
        outcome_letters = outcome_alphabet(num_patient_outcomes)
    elif len(outcome_letters) < 2 or len(set(outcome_letters)) != len(outcome_letters):
        raise ConfigurationError("outcome_letters must be at least two distinct letters")

    result = []
    for letters in combinations_with_replacement(outcome_letters, int(cohort_size)):
        counts = tuple(letters.count(x) for x in outcome_letters)
        result.append(OutcomeCombination(
            outcomes=''.join(letters),
            counts=counts,
            multiplicity=_multinomial(counts),
        ))
    return result


def cohort_probability(num_tox: int, cohort_size: int, prob_tox: float) -> float:
    """Binomial probability of ``num_tox`` toxicities among ``cohort_size`` patients."""
    return float(binom.pmf(num_tox, cohort_size, prob_tox))


def outcome_probability(combination: OutcomeCombination, prob_tox: float) -> float:
    """
    Probability of a cohort outcome when each patient independently has
    toxicity with probability ``prob_tox``.

    This is the binomial mass C(n, j) p^j (1 - p)^(n - j), which already
    accounts for the multiplicity of the combination.
    """
    if len(combination.counts) != 2:
        # Would need a joint distribution over all outcome categories.
        raise NotImplementedError("Probabilities are only available for binary outcomes")
    return cohort_probability(combination.num_tox, combination.cohort_size, prob_tox)


def cohort_outcome_probabilities(cohort_size: int, prob_tox: float) -> List[Tuple[OutcomeCombination, float]]:
    """Pair each binary outcome combination of a cohort with its probability."""
    return [(c, outcome_probability(c, prob_tox))
            for c in cohort_outcome_combinations(cohort_size)]


def num_distinct_outcomes(cohort_size: int, num_patient_outcomes: int = 2) -> int:
    """Number of distinguishable outcomes of a cohort, C(n + k - 1, k - 1)."""
    return int(comb(cohort_size + num_patient_outcomes - 1, num_patient_outcomes - 1, exact=True))


def num_dose_path_nodes(num_patient_outcomes: int, cohort_sizes: Sequence[int]) -> np.ndarray:
    """
    Number of nodes at each depth of a fully expanded dose-path tree.

    No early stopping is assumed, so for a real design these counts are an
    upper bound.

    Parameters
    ----------
    num_patient_outcomes : int
        Number of outcome categories per patient (2 for toxicity only)
    cohort_sizes : sequence of int
        Size of each successive cohort

    Returns
    -------
    np.ndarray
        Node counts, the root first and then one entry per cohort

    Examples
    --------
    >>> num_dose_path_nodes(2, [3, 3]).tolist()
    [1, 4, 16]
    """
    if int(num_patient_outcomes) != num_patient_outcomes or num_patient_outcomes < 2:
        raise ConfigurationError("num_patient_outcomes must be an integer >= 2")
    cohort_sizes = list(cohort_sizes)
    for n in cohort_sizes:
        if int(n) != n or n < 1:
            raise ConfigurationError(f"Invalid cohort size: {n}")

    counts = [1]
    for n in cohort_sizes:
        counts.append(counts[-1] * num_distinct_outcomes(int(n), int(num_patient_outcomes)))
    # object dtype keeps exact integers when deep trees overflow int64
    dtype = int if counts[-1] < np.iinfo(np.int64).max else object
    return np.array(counts, dtype=dtype)
