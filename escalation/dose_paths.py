"""
Enumeration of dose-paths.

A dose-path is a possible sequence of cohort outcomes together with the dose
decisions a design would make after each of them. Starting from the current
state of a trial, every distinguishable outcome of the next cohort is tried,
the design is refitted, and the process repeats until the design stops or
the requested number of cohorts has been enumerated.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence
import logging
import pandas as pd

from .enumeration import cohort_outcome_combinations
from .errors import ConfigurationError, ModelInvocationError
from .outcomes import TOXICITY, append_cohort, parse_phase1_outcomes
from .selector import DoseSelectorFactory, Recommendation

logger = logging.getLogger(__name__)


def _positive_int(value, name: str) -> int:
    """Convert ``value`` to a positive int or raise ConfigurationError."""
    try:
        valid = not isinstance(value, bool) and int(value) == value and value >= 1
    except (TypeError, ValueError, OverflowError):
        valid = False
    if not valid:
        raise ConfigurationError(f"Invalid {name}: {value}")
    return int(value)


@dataclass
class DosePathParameters:
    """
    Settings for a dose-path enumeration.

    Attributes
    ----------
    cohort_sizes : sequence of int
        Size of each future cohort, one per level of the tree
    previous_outcomes : str
        Outcomes already observed, in outcome-string notation
    next_dose : int, optional
        Dose for the first future cohort, overriding the design's own
        recommendation
    """
    cohort_sizes: Sequence[int]
    previous_outcomes: str = ''
    next_dose: Optional[int] = None

    def __post_init__(self):
        self._validate()

    def _validate(self):
        """Validate parameters that do not depend on the design."""
        if self.cohort_sizes is None or len(self.cohort_sizes) == 0:
            raise ConfigurationError("cohort_sizes must contain at least one cohort")
        self.cohort_sizes = tuple(_positive_int(n, "cohort size") for n in self.cohort_sizes)
        if self.previous_outcomes is None:
            self.previous_outcomes = ''
        # raises ParseError for malformed outcomes
        self._parsed = parse_phase1_outcomes(self.previous_outcomes)
        if self.next_dose is not None:
            self.next_dose = _positive_int(self.next_dose, "next_dose")

    @property
    def horizon(self) -> int:
        return len(self.cohort_sizes)

    def validate_doses(self, num_doses: int):
        """Check every dose mentioned is one of the design's ``num_doses`` doses."""
        if self.next_dose is not None and self.next_dose > num_doses:
            raise ConfigurationError(
                f"next_dose={self.next_dose} but the design has {num_doses} doses")
        if self._parsed.num_patients and self._parsed.dose.max() > num_doses:
            raise ConfigurationError(
                f"previous_outcomes refer to dose {self._parsed.dose.max()} "
                f"but the design has {num_doses} doses")


@dataclass
class PathNode:
    """
    One state in the tree of dose-paths.

    Attributes
    ----------
    node_id : int
        Position of the node in ``DosePaths.nodes``; the root is 0
    parent_id : int or None
        Id of the parent node, None for the root
    depth : int
        Number of future cohorts evaluated to reach this node
    outcomes : str
        Outcomes of the cohort that led here, '' at the root
    dose_given : int or None
        Dose at which that cohort was treated, None at the root
    history : str
        Full outcome string, previous outcomes included
    next_dose : int or None
        Dose recommended by the design at this node
    continue_ : bool
        False if the design advised stopping at this node
    children : dict
        Child node ids keyed by cohort outcomes
    """
    node_id: int
    parent_id: Optional[int]
    depth: int
    outcomes: str
    dose_given: Optional[int]
    history: str
    next_dose: Optional[int]
    continue_: bool
    children: Dict[str, int] = field(default_factory=dict)

    @property
    def stopped(self) -> bool:
        return not self.continue_ or self.next_dose is None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def num_tox(self) -> int:
        return self.outcomes.count(TOXICITY)


class DosePaths:
    """
    A fully enumerated tree of dose-paths.

    Nodes are held in a list and refer to each other by index.
    """

    def __init__(self, nodes: List[PathNode], parameters: DosePathParameters, num_doses: int):
        self.nodes = nodes
        self.parameters = parameters
        self.num_doses = num_doses

    @property
    def root(self) -> PathNode:
        return self.nodes[0]

    @property
    def cohort_sizes(self) -> Sequence[int]:
        return self.parameters.cohort_sizes

    @property
    def previous_outcomes(self) -> str:
        return self.parameters.previous_outcomes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[PathNode]:
        return iter(self.nodes)

    def __getitem__(self, node_id: int) -> PathNode:
        return self.nodes[node_id]

    def children(self, node: PathNode) -> List[PathNode]:
        return [self.nodes[i] for i in node.children.values()]

    def leaves(self) -> List[PathNode]:
        return [node for node in self.nodes if node.is_leaf]

    def path_to(self, node: PathNode) -> List[PathNode]:
        """Nodes from the root down to ``node``, inclusive."""
        path = [node]
        while path[-1].parent_id is not None:
            path.append(self.nodes[path[-1].parent_id])
        return path[::-1]

    def nodes_per_depth(self) -> List[int]:
        counts = [0] * (self.parameters.horizon + 1)
        for node in self.nodes:
            counts[node.depth] += 1
        return counts

    def to_frame(self) -> pd.DataFrame:
        """One row per node."""
        return pd.DataFrame({
            'node_id': [n.node_id for n in self.nodes],
            'parent_id': pd.array([n.parent_id for n in self.nodes], dtype='Int64'),
            'depth': [n.depth for n in self.nodes],
            'dose_given': pd.array([n.dose_given for n in self.nodes], dtype='Int64'),
            'outcomes': [n.outcomes for n in self.nodes],
            'next_dose': pd.array([n.next_dose for n in self.nodes], dtype='Int64'),
            'continue': [n.continue_ for n in self.nodes],
            'history': [n.history for n in self.nodes],
        })

    def spread_paths(self) -> pd.DataFrame:
        """
        One row per complete path with the outcomes and decisions at each
        depth in columns ``outcomes1..D`` and ``next_dose0..D``.
        """
        horizon = self.parameters.horizon
        rows = []
        for leaf in self.leaves():
            row = {'leaf_id': leaf.node_id}
            for node in self.path_to(leaf):
                if node.depth > 0:
                    row[f'outcomes{node.depth}'] = node.outcomes
                row[f'next_dose{node.depth}'] = node.next_dose
            rows.append(row)
        columns = ['leaf_id', 'next_dose0']
        for d in range(1, horizon + 1):
            columns += [f'outcomes{d}', f'next_dose{d}']
        df = pd.DataFrame(rows, columns=columns)
        for col in columns:
            if col.startswith('next_dose'):
                df[col] = df[col].astype('Int64')
        return df

    def __str__(self) -> str:
        return (f"Dose-paths over {self.parameters.horizon} cohort(s) of sizes "
                f"{list(self.cohort_sizes)}: {len(self.nodes)} nodes, "
                f"{len(self.leaves())} complete paths")


def _recommend(selector_factory: DoseSelectorFactory, history: str, num_doses: int) -> Recommendation:
    try:
        rec = selector_factory.fit(history).recommendation()
    except Exception as e:
        raise ModelInvocationError(
            f"Dose selector failed for outcomes '{history}': {e}", history) from e

    if rec.dose is not None:
        try:
            whole = not isinstance(rec.dose, bool) and int(rec.dose) == rec.dose
        except (TypeError, ValueError, OverflowError):
            whole = False
        if not whole:
            raise ModelInvocationError(
                f"Dose selector recommended dose {rec.dose!r} for outcomes '{history}', "
                f"which is not a whole dose-level", history)
        if not 1 <= rec.dose <= num_doses:
            raise ModelInvocationError(
                f"Dose selector recommended dose {rec.dose} for outcomes '{history}' "
                f"but the design has {num_doses} doses", history)
        rec = Recommendation(dose=int(rec.dose), continue_=rec.continue_)
    return rec


def get_dose_paths(selector_factory: DoseSelectorFactory,
                   cohort_sizes: Sequence[int],
                   previous_outcomes: str = '',
                   next_dose: Optional[int] = None) -> DosePaths:
    """
    Enumerate the dose-paths of a design.

    Parameters
    ----------
    selector_factory : DoseSelectorFactory
        The dose-finding design
    cohort_sizes : sequence of int
        Size of each future cohort; the tree has this many levels below
        the root
    previous_outcomes : str
        Outcomes already observed, e.g. ``'1NNN 2NTN'``
    next_dose : int, optional
        Force the dose given to the first future cohort

    Returns
    -------
    DosePaths

    Examples
    --------
    >>> paths = get_dose_paths(ThreePlusThree(num_doses=5), cohort_sizes=[3, 3])
    >>> paths.nodes_per_depth()
    [1, 4, 16]
    """
    parameters = DosePathParameters(cohort_sizes=cohort_sizes,
                                    previous_outcomes=previous_outcomes,
                                    next_dose=next_dose)
    num_doses = int(selector_factory.num_doses)
    parameters.validate_doses(num_doses)
    horizon = parameters.horizon

    history = parameters.previous_outcomes.strip()
    rec = _recommend(selector_factory, history, num_doses)
    if parameters.next_dose is not None:
        rec = Recommendation(dose=parameters.next_dose, continue_=True)

    nodes = [PathNode(node_id=0, parent_id=None, depth=0, outcomes='', dose_given=None,
                      history=history, next_dose=rec.dose, continue_=rec.continue_)]
    stack = [0]
    while stack:
        node = nodes[stack.pop()]
        if node.stopped or node.depth == horizon:
            continue

        cohort_size = parameters.cohort_sizes[node.depth]
        logger.debug(f"Expanding node {node.node_id} ('{node.history}') with a cohort "
                     f"of {cohort_size} at dose {node.next_dose}")
        child_ids = []
        for combination in cohort_outcome_combinations(cohort_size):
            child_history = append_cohort(node.history, node.next_dose, combination.outcomes)
            rec = _recommend(selector_factory, child_history, num_doses)
            child = PathNode(node_id=len(nodes), parent_id=node.node_id, depth=node.depth + 1,
                             outcomes=combination.outcomes, dose_given=node.next_dose,
                             history=child_history, next_dose=rec.dose,
                             continue_=rec.continue_)
            nodes.append(child)
            node.children[combination.outcomes] = child.node_id
            child_ids.append(child.node_id)
        stack.extend(reversed(child_ids))

    paths = DosePaths(nodes, parameters, num_doses)
    logger.info(f"Enumerated {len(nodes)} dose-path nodes over {horizon} cohort(s)")
    return paths
