"""
Exact operating characteristics of dose-paths.

Given assumed true toxicity rates, every dose-path has an exact probability:
the product, over its cohorts, of the binomial probability of the observed
number of toxicities at the dose the cohort received. Summing over complete
paths gives the probability of each final decision without simulation.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging
import warnings
import numpy as np
import pandas as pd

from .dose_paths import DosePaths, PathNode
from .enumeration import cohort_probability
from .errors import ConfigurationError, NumericToleranceWarning
from .utils import NO_DOSE, dose_labels

logger = logging.getLogger(__name__)

STATUS_CONTINUE = 'continue'
STATUS_STOP_WITH_DOSE = 'stop_with_dose'
STATUS_STOP_NO_DOSE = 'stop_no_dose'


def leaf_status(node: PathNode) -> str:
    """Why a path ended, as reported by the design at its final node."""
    if node.next_dose is None:
        return STATUS_STOP_NO_DOSE
    if not node.continue_:
        return STATUS_STOP_WITH_DOSE
    return STATUS_CONTINUE


@dataclass
class CrystallisedPath:
    """
    A complete dose-path and its probability.

    Attributes
    ----------
    leaf_id : int
        Id of the final node of the path
    prob : float
        Probability of the path under the assumed toxicity rates
    final_dose : int or None
        Dose recommended at the end of the path, None for no dose
    status : str
        'continue', 'stop_with_dose' or 'stop_no_dose'
    num_patients : int
        Patients treated along the path, previous outcomes excluded
    num_tox : int
        Toxicities along the path, previous outcomes excluded
    patients_per_dose : np.ndarray
        Patients treated at each dose along the path
    """
    leaf_id: int
    prob: float
    final_dose: Optional[int]
    status: str
    num_patients: int
    num_tox: int
    patients_per_dose: np.ndarray

    @property
    def continues(self) -> bool:
        return self.status == STATUS_CONTINUE


@dataclass
class PathSummary:
    """
    Aggregate operating characteristics.

    Attributes
    ----------
    prob_recommend : pd.Series
        Probability of each final recommendation, indexed 'NoDose', '1'..'D'
    prob_continue : float
        Probability that the design is still continuing after the last cohort
    prob_stop_with_dose : float
        Probability the design stops with a recommended dose
    prob_stop_no_dose : float
        Probability the design stops without a dose
    expected_num_patients : float
        Expected number of patients treated
    expected_num_tox : float
        Expected number of toxicities
    prob_administer : pd.Series
        Expected share of patients treated at each dose
    """
    prob_recommend: pd.Series
    prob_continue: float
    prob_stop_with_dose: float
    prob_stop_no_dose: float
    expected_num_patients: float
    expected_num_tox: float
    prob_administer: pd.Series

    def __str__(self) -> str:
        lines = ["Probability of recommendation:"]
        for dose, prob in self.prob_recommend.items():
            lines.append(f"  {dose:>6}: {prob:.4f}")
        lines.append(f"Probability of continuance: {self.prob_continue:.4f}")
        lines.append(f"Expected number of patients: {self.expected_num_patients:.2f}")
        lines.append(f"Expected number of toxicities: {self.expected_num_tox:.2f}")
        return '\n'.join(lines)


@dataclass
class CrystallisedDosePaths:
    """
    Dose-paths combined with assumed true toxicity rates.

    Attributes
    ----------
    dose_paths : DosePaths
        The enumerated tree (not modified)
    true_prob_tox : np.ndarray
        Assumed toxicity rate at each dose
    node_probabilities : np.ndarray
        Probability of reaching each node, indexed by node id
    paths : list of CrystallisedPath
        One entry per complete path
    summary : PathSummary
    """
    dose_paths: DosePaths
    true_prob_tox: np.ndarray
    node_probabilities: np.ndarray
    paths: List[CrystallisedPath] = field(default_factory=list)
    summary: Optional[PathSummary] = None

    @property
    def prob_recommend(self) -> pd.Series:
        return self.summary.prob_recommend

    @property
    def prob_continue(self) -> float:
        return self.summary.prob_continue

    @property
    def total_prob(self) -> float:
        return float(sum(p.prob for p in self.paths))

    def terminal_frame(self) -> pd.DataFrame:
        """One row per complete path."""
        return pd.DataFrame({
            'leaf_id': [p.leaf_id for p in self.paths],
            'history': [self.dose_paths[p.leaf_id].history for p in self.paths],
            'prob': [p.prob for p in self.paths],
            'final_dose': pd.array([p.final_dose for p in self.paths], dtype='Int64'),
            'status': [p.status for p in self.paths],
            'num_patients': [p.num_patients for p in self.paths],
            'num_tox': [p.num_tox for p in self.paths],
        })


def _validate_true_prob_tox(true_prob_tox: Sequence[float], num_doses: int) -> np.ndarray:
    try:
        prob = np.asarray(true_prob_tox, dtype=float)
    except (TypeError, ValueError):
        raise ConfigurationError("true_prob_tox must be a vector of probabilities")
    if prob.ndim != 1 or len(prob) != num_doses:
        raise ConfigurationError(
            f"true_prob_tox has {prob.size} value(s) but the design has {num_doses} doses")
    if not np.all(np.isfinite(prob)) or np.any(prob < 0) or np.any(prob > 1):
        raise ConfigurationError("true_prob_tox values must be in [0, 1]")
    return prob


def _summarise(paths: List[CrystallisedPath], num_doses: int) -> PathSummary:
    labels = dose_labels(num_doses)
    prob_recommend = pd.Series(0.0, index=labels, name='prob_recommend')
    prob_by_status = {STATUS_CONTINUE: 0.0, STATUS_STOP_WITH_DOSE: 0.0, STATUS_STOP_NO_DOSE: 0.0}
    patients_per_dose = np.zeros(num_doses, dtype=float)
    expected_n = 0.0
    expected_tox = 0.0

    for path in paths:
        label = NO_DOSE if path.final_dose is None else str(path.final_dose)
        prob_recommend[label] += path.prob
        prob_by_status[path.status] += path.prob
        patients_per_dose += path.prob * path.patients_per_dose
        expected_n += path.prob * path.num_patients
        expected_tox += path.prob * path.num_tox

    if expected_n > 0:
        administer = patients_per_dose / expected_n
    else:
        administer = np.zeros(num_doses, dtype=float)

    return PathSummary(
        prob_recommend=prob_recommend,
        prob_continue=prob_by_status[STATUS_CONTINUE],
        prob_stop_with_dose=prob_by_status[STATUS_STOP_WITH_DOSE],
        prob_stop_no_dose=prob_by_status[STATUS_STOP_NO_DOSE],
        expected_num_patients=expected_n,
        expected_num_tox=expected_tox,
        prob_administer=pd.Series(administer, index=labels[1:], name='prob_administer'),
    )


def calculate_probabilities(dose_paths: DosePaths,
                            true_prob_tox: Sequence[float],
                            tolerance: float = 1e-9) -> CrystallisedDosePaths:
    """
    Crystallise dose-paths under assumed true toxicity rates.

    Parameters
    ----------
    dose_paths : DosePaths
        Output of get_dose_paths
    true_prob_tox : sequence of float
        True probability of toxicity at each dose
    tolerance : float
        Allowed deviation of the total path probability from one before a
        NumericToleranceWarning is issued

    Returns
    -------
    CrystallisedDosePaths
    """
    num_doses = dose_paths.num_doses
    prob_tox = _validate_true_prob_tox(true_prob_tox, num_doses)

    node_prob = np.zeros(len(dose_paths), dtype=float)
    node_prob[0] = 1.0
    paths = []

    # (node id, patients per dose along the path, toxicities along the path)
    stack = [(0, np.zeros(num_doses, dtype=int), 0)]
    while stack:
        node_id, n_per_dose, n_tox = stack.pop()
        node = dose_paths[node_id]

        if node.is_leaf:
            paths.append(CrystallisedPath(
                leaf_id=node_id,
                prob=float(node_prob[node_id]),
                final_dose=node.next_dose,
                status=leaf_status(node),
                num_patients=int(n_per_dose.sum()),
                num_tox=n_tox,
                patients_per_dose=n_per_dose,
            ))
            continue

        p = prob_tox[node.next_dose - 1]
        for child_id in reversed(list(node.children.values())):
            child = dose_paths[child_id]
            cohort_size = len(child.outcomes)
            node_prob[child_id] = node_prob[node_id] * cohort_probability(child.num_tox, cohort_size, p)
            child_n = n_per_dose.copy()
            child_n[child.dose_given - 1] += cohort_size
            stack.append((child_id, child_n, n_tox + child.num_tox))

    paths.sort(key=lambda x: x.leaf_id)
    total = float(sum(path.prob for path in paths))
    if abs(total - 1.0) > tolerance:
        warnings.warn(f"Dose-path probabilities sum to {total:.12f}, not 1. "
                      f"Outcome combinations may be missing or double counted.",
                      NumericToleranceWarning)

    summary = _summarise(paths, num_doses)
    logger.info(f"Crystallised {len(paths)} dose-paths; P(continue)={summary.prob_continue:.4f}")
    return CrystallisedDosePaths(
        dose_paths=dose_paths,
        true_prob_tox=prob_tox,
        node_probabilities=node_prob,
        paths=paths,
        summary=summary,
    )
