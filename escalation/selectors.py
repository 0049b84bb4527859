"""
Concrete dose-finding designs implementing the selector interface.

These designs are deliberately simple. They exist to drive dose-path
enumeration and to show how a design plugs into it.
"""

import math
from typing import Optional, Sequence
import numpy as np

from .errors import ConfigurationError
from .selector import DoseSelector, DoseSelectorFactory


def clamp_probs(p: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    return np.clip(p, eps, 1.0 - eps)


# -------------------------
# 3+3
# -------------------------
class ThreePlusThreeSelector(DoseSelector):

    def __init__(self, outcomes: str, num_doses: int, allow_deescalate: bool):
        super().__init__(outcomes, num_doses)
        self._dose, self._continue = self._select(allow_deescalate)

    def _select(self, allow_deescalate):
        """
        Classic 3+3 rules applied to the dose of the most recent cohort:

        - 0/3 or <=1/6 toxicities: escalate, unless the next dose is known
          to be too toxic, in which case stop once 6 are treated here
        - 1/3: treat 3 more at the same dose
        - >=2 toxicities: the dose is too toxic. Stop at the dose below, or
          de-escalate to treat more there if allowed. Stop with no dose if
          the lowest dose is too toxic.
        """
        if self.num_patients == 0:
            return 1, True

        dose = int(self.parsed.dose[-1])
        n = self.n_at_dose(dose)
        tox = self.tox_at_dose(dose)

        if tox >= 2:
            if dose == 1:
                return None, False
            lower = dose - 1
            if allow_deescalate and self.n_at_dose(lower) < 6:
                return lower, True
            return lower, False

        if n < 3 or (tox == 1 and n < 6):
            return dose, True

        if dose == self.num_doses or self.tox_at_dose(dose + 1) >= 2:
            return dose, n < 6
        return dose + 1, True

    def recommended_dose(self) -> Optional[int]:
        return self._dose

    def continue_(self) -> bool:
        return self._continue


class ThreePlusThree(DoseSelectorFactory):
    """
    The 3+3 design.

    Parameters
    ----------
    num_doses : int
        Number of dose-levels
    allow_deescalate : bool
        If True, a dose found too toxic sends the trial back to the dose
        below to complete six patients there. If False (the default) the
        trial stops and recommends the dose below.
    """

    def __init__(self, num_doses: int, allow_deescalate: bool = False):
        if num_doses < 1:
            raise ConfigurationError("num_doses must be positive")
        self._num_doses = int(num_doses)
        self.allow_deescalate = allow_deescalate

    @property
    def num_doses(self) -> int:
        return self._num_doses

    def fit(self, outcomes: str) -> ThreePlusThreeSelector:
        return ThreePlusThreeSelector(outcomes, self._num_doses, self.allow_deescalate)


# -------------------------
# CRM
# -------------------------
class EmpiricCRMSelector(DoseSelector):

    def __init__(self, outcomes: str, crm: 'EmpiricCRM'):
        super().__init__(outcomes, crm.num_doses)
        self.crm = crm
        y = np.array([self.tox_at_dose(d) for d in range(1, crm.num_doses + 1)], dtype=float)
        n = np.array([self.n_at_dose(d) for d in range(1, crm.num_doses + 1)], dtype=float)
        self.weights = crm.posterior_weights(y, n)
        # shape: (G, D)
        self._p = clamp_probs(np.power(crm.skeleton[None, :], np.exp(crm.theta_grid)[:, None]))
        self.prob_tox = (self.weights[:, None] * self._p).sum(axis=0)

    def prob_tox_exceeds(self, threshold: float) -> np.ndarray:
        """Posterior probability that each dose's toxicity rate exceeds threshold."""
        return (self.weights[:, None] * (self._p > threshold)).sum(axis=0)

    def recommended_dose(self) -> Optional[int]:
        best = int(np.argmin(np.abs(self.prob_tox - self.crm.target))) + 1
        if self.crm.no_skip:
            highest_given = int(self.parsed.dose.max()) if self.num_patients else 0
            best = min(best, highest_given + 1)
        return best

    def continue_(self) -> bool:
        return True


class EmpiricCRM(DoseSelectorFactory):
    """
    CRM with the one-parameter power ("empiric") model and a grid posterior.

      p_i(theta) = skeleton_i ** exp(theta),  theta ~ Normal(0, sigma^2)

    Parameters
    ----------
    skeleton : sequence of float
        Prior guesses of the toxicity rate at each dose, increasing
    target : float
        Target toxicity rate
    sigma : float
        Prior standard deviation of theta
    no_skip : bool
        Never recommend more than one dose above the highest dose given
    """

    def __init__(self, skeleton: Sequence[float], target: float,
                 sigma: float = 1.0, no_skip: bool = True):
        skeleton = np.asarray(skeleton, dtype=float)
        if skeleton.ndim != 1 or len(skeleton) == 0:
            raise ConfigurationError("skeleton must be a non-empty vector")
        if np.any(skeleton <= 0) or np.any(skeleton >= 1):
            raise ConfigurationError("skeleton values must be in (0, 1)")
        if not 0 < target < 1:
            raise ConfigurationError("target must be in (0, 1)")
        if sigma <= 0:
            raise ConfigurationError("sigma must be positive")
        self.skeleton = clamp_probs(skeleton)
        self.target = float(target)
        self.sigma = float(sigma)
        self.no_skip = no_skip
        # theta grid for posterior (fast + stable)
        self.theta_grid = np.linspace(-4.0, 4.0, 801)

    @property
    def num_doses(self) -> int:
        return len(self.skeleton)

    def posterior_weights(self, y: np.ndarray, n: np.ndarray) -> np.ndarray:
        """
        Normalised posterior weights over the theta grid.

        Parameters
        ----------
        y : np.ndarray
            Toxicities at each dose
        n : np.ndarray
            Patients treated at each dose
        """
        sigma = self.sigma
        log_prior = -0.5 * (self.theta_grid / sigma) ** 2 - math.log(sigma) - 0.5 * math.log(2 * math.pi)

        p = clamp_probs(np.power(self.skeleton[None, :], np.exp(self.theta_grid)[:, None]))
        loglik = (y[None, :] * np.log(p) + (n[None, :] - y[None, :]) * np.log(1 - p)).sum(axis=1)

        log_post = log_prior + loglik
        log_post -= np.max(log_post)
        w = np.exp(log_post)
        return w / np.sum(w)

    def fit(self, outcomes: str) -> EmpiricCRMSelector:
        return EmpiricCRMSelector(outcomes, self)


# -------------------------
# Stopping rules
# -------------------------
class DerivedSelector(DoseSelector):
    """A selector that adjusts the advice of a parent selector."""

    def __init__(self, outcomes: str, parent: DoseSelector):
        super().__init__(outcomes, parent.num_doses)
        self.parent = parent

    def prob_tox_exceeds(self, threshold: float) -> np.ndarray:
        return self.parent.prob_tox_exceeds(threshold)

    def recommended_dose(self) -> Optional[int]:
        return self.parent.recommended_dose()

    def continue_(self) -> bool:
        return self.parent.continue_()


class StopAtNSelector(DerivedSelector):

    def __init__(self, outcomes: str, parent: DoseSelector, n: int):
        super().__init__(outcomes, parent)
        self.n = n

    def continue_(self) -> bool:
        return self.num_patients < self.n and self.parent.continue_()


class StopAtN(DoseSelectorFactory):
    """
    Stop once ``n`` patients have been evaluated, keeping the parent
    design's recommended dose.
    """

    def __init__(self, parent: DoseSelectorFactory, n: int):
        if n < 1:
            raise ConfigurationError("n must be positive")
        self.parent = parent
        self.n = int(n)

    @property
    def num_doses(self) -> int:
        return self.parent.num_doses

    def fit(self, outcomes: str) -> StopAtNSelector:
        return StopAtNSelector(outcomes, self.parent.fit(outcomes), self.n)


class StopWhenTooToxicSelector(DerivedSelector):

    def __init__(self, outcomes: str, parent: DoseSelector, rule: 'StopWhenTooToxic'):
        super().__init__(outcomes, parent)
        prob = parent.prob_tox_exceeds(rule.tox_threshold)[rule.dose - 1]
        self.too_toxic = bool(prob > rule.confidence)

    def recommended_dose(self) -> Optional[int]:
        return None if self.too_toxic else self.parent.recommended_dose()

    def continue_(self) -> bool:
        return not self.too_toxic and self.parent.continue_()


class StopWhenTooToxic(DoseSelectorFactory):
    """
    Stop with no dose when the posterior probability that ``dose`` has a
    toxicity rate above ``tox_threshold`` exceeds ``confidence``.

    The parent design must provide ``prob_tox_exceeds``.
    """

    def __init__(self, parent: DoseSelectorFactory, dose: int,
                 tox_threshold: float, confidence: float):
        if not 1 <= dose <= parent.num_doses:
            raise ConfigurationError(f"dose must be between 1 and {parent.num_doses}")
        if not 0 < tox_threshold < 1 or not 0 < confidence < 1:
            raise ConfigurationError("tox_threshold and confidence must be in (0, 1)")
        self.parent = parent
        self.dose = int(dose)
        self.tox_threshold = float(tox_threshold)
        self.confidence = float(confidence)

    @property
    def num_doses(self) -> int:
        return self.parent.num_doses

    def fit(self, outcomes: str) -> StopWhenTooToxicSelector:
        return StopWhenTooToxicSelector(outcomes, self.parent.fit(outcomes), self)
