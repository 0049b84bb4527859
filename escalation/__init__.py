"""
Exact Operating Characteristics of Phase I Dose-Escalation Designs

This Python package enumerates every future dose-path of a dose-finding
design and calculates the exact probability of each path under assumed
true toxicity rates, giving operating characteristics without simulation.

Based on the dose-paths and outcome-string ideas of the R packages
'escalation' and 'trialr' by Kristian Brock.
"""

__version__ = "1.0.0"
__author__ = "Python port of escalation R package"

from .errors import (
    EscalationError, ParseError, ConfigurationError, ModelInvocationError,
    NumericToleranceWarning
)
from .outcomes import (
    ParsedOutcomes, parse_phase1_outcomes, phase1_outcomes_to_cohorts,
    phase1_outcomes_to_string
)
from .selector import DoseSelector, DoseSelectorFactory, Recommendation
from .selectors import ThreePlusThree, EmpiricCRM, StopAtN, StopWhenTooToxic
from .enumeration import (
    OutcomeCombination, cohort_outcome_combinations, cohort_outcome_probabilities,
    outcome_alphabet, outcome_probability, num_distinct_outcomes, num_dose_path_nodes
)
from .dose_paths import DosePathParameters, DosePaths, PathNode, get_dose_paths
from .crystallise import (
    CrystallisedDosePaths, CrystallisedPath, PathSummary, calculate_probabilities
)
from .utils import setup_logging

__all__ = [
    # Errors
    'EscalationError', 'ParseError', 'ConfigurationError', 'ModelInvocationError',
    'NumericToleranceWarning',
    # Outcome strings
    'ParsedOutcomes', 'parse_phase1_outcomes', 'phase1_outcomes_to_cohorts',
    'phase1_outcomes_to_string',
    # Designs
    'DoseSelector', 'DoseSelectorFactory', 'Recommendation',
    'ThreePlusThree', 'EmpiricCRM', 'StopAtN', 'StopWhenTooToxic',
    # Enumeration
    'OutcomeCombination', 'cohort_outcome_combinations', 'cohort_outcome_probabilities',
    'outcome_alphabet', 'outcome_probability', 'num_distinct_outcomes', 'num_dose_path_nodes',
    # Dose-paths
    'DosePathParameters', 'DosePaths', 'PathNode', 'get_dose_paths',
    # Crystallisation
    'CrystallisedDosePaths', 'CrystallisedPath', 'PathSummary', 'calculate_probabilities',
    # Utilities
    'setup_logging',
]
