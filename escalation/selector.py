"""
Interface that dose-finding models implement to be used with dose paths.

A ``DoseSelectorFactory`` describes a design (its doses and rules) and
creates a ``DoseSelector`` fitted to a particular outcome history. Selectors
are refitted from scratch for every history, so fitting the same outcomes
twice must give the same recommendation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .outcomes import ParsedOutcomes, parse_phase1_outcomes


@dataclass(frozen=True)
class Recommendation:
    """
    A selector's advice at one point in a trial.

    Attributes
    ----------
    dose : int or None
        Dose-level for the next cohort, None for no dose
    continue_ : bool
        False if the selector advises that the trial stop
    """
    dose: Optional[int]
    continue_: bool

    @property
    def stopped(self) -> bool:
        # Without a dose there is nowhere to treat the next cohort.
        return not self.continue_ or self.dose is None


class DoseSelector(ABC):
    """A dose-finding model fitted to an outcome history."""

    def __init__(self, outcomes: str, num_doses: int):
        self.outcomes = outcomes
        self.parsed: ParsedOutcomes = parse_phase1_outcomes(outcomes)
        self._num_doses = num_doses

    @property
    def num_doses(self) -> int:
        return self._num_doses

    @property
    def num_patients(self) -> int:
        return self.parsed.num_patients

    @abstractmethod
    def recommended_dose(self) -> Optional[int]:
        """Dose-level recommended for the next cohort, or None."""

    @abstractmethod
    def continue_(self) -> bool:
        """Whether the trial should continue."""

    def recommendation(self) -> Recommendation:
        return Recommendation(dose=self.recommended_dose(), continue_=bool(self.continue_()))

    def n_at_dose(self, dose: int) -> int:
        return int((self.parsed.dose == dose).sum())

    def tox_at_dose(self, dose: int) -> int:
        return int(self.parsed.tox[self.parsed.dose == dose].sum())


class DoseSelectorFactory(ABC):
    """A dose-finding design, able to fit a fresh selector to any history."""

    @property
    @abstractmethod
    def num_doses(self) -> int:
        """Number of dose-levels in the design."""

    @abstractmethod
    def fit(self, outcomes: str) -> DoseSelector:
        """
        Fit the design to an outcome history.

        Parameters
        ----------
        outcomes : str
            Outcome string, possibly empty

        Returns
        -------
        DoseSelector
        """
