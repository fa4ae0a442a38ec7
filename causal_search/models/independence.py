# FILE: causal_search/models/independence.py
# ======================================================================================
# Causal Search Engine (CSE)
# Independence tests: the capability consumed by the adjacency search
# --------------------------------------------------------------------------------------
# Contract
# --------
#   test.check_independence(x, y, z) -> IndependenceResult(independent, p_value, failed)
#
#   • Deterministic for a given (x, y, z) over an immutable dataset; results are
#     cached under the canonical key (min(x,y), max(x,y), sorted(z)).
#   • A test that cannot decide (singular covariance submatrix, too few samples)
#     raises IndependenceTestError inside `_check`; the public method turns that
#     into a `failed` result that callers treat as "dependent" and count.
#
# Built-in tests
# --------------
#   • FisherZTest      continuous data, partial correlation + Fisher Z (SciPy normal sf)
#   • GSquareTest      discrete data, likelihood-ratio G² over strata (SciPy chi2 sf)
#   • MSeparationTest  oracle over a known graph (m-separation / d-separation)
#
# Tests are picked through IndTestType + make_independence_test(), resolved once at
# configuration time.
#
# License
# -------
# MIT (c) 2025 Causal Search Engine contributors
# ======================================================================================

from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.stats import chi2, norm

from ..errors import ConfigurationError, DataTypeError, IndependenceTestError
from ..utils.logging_utils import get_logger
from .graph import Graph, Node, nodes_from_names
from .transforms import is_m_separated

log = get_logger("cse.independence")

DataLike = Union[pd.DataFrame, np.ndarray]
NodeLike = Union[Node, str]


@dataclass(frozen=True)
class IndependenceResult:
    independent: bool
    p_value: float
    failed: bool = False


def _as_frame(data: DataLike, variables: Optional[Sequence[str]] = None) -> pd.DataFrame:
    if isinstance(data, pd.DataFrame):
        df = data
        if variables is not None:
            missing = [v for v in variables if v not in df.columns]
            if missing:
                raise ConfigurationError(f"Unknown variables: {missing}")
            df = df[list(variables)]
    else:
        X = np.asarray(data)
        if X.ndim != 2:
            raise ConfigurationError("Data must be 2D [N, D].")
        names = list(variables) if variables is not None else [f"X{i}" for i in range(X.shape[1])]
        if len(names) != X.shape[1]:
            raise ConfigurationError("variables length must equal number of columns in data.")
        df = pd.DataFrame(X, columns=names)
    df = df.copy()
    df.columns = [str(c) for c in df.columns]
    if df.shape[1] < 2:
        raise ConfigurationError("At least two variables are needed for a search.")
    return df


class IndependenceTest(ABC):
    """
    Base class for conditional-independence tests over a fixed variable list.
    """

    name = "independence_test"

    def __init__(self, variables: Sequence[Node], alpha: float):
        self._variables: List[Node] = list(variables)
        self._by_name: Dict[str, Node] = {v.name: v for v in self._variables}
        self._alpha = float(alpha)
        self._cache: Dict[Tuple[str, str, Tuple[str, ...]], IndependenceResult] = {}
        self._lock = threading.Lock()
        self.num_tests = 0
        self.num_failures = 0

    @property
    def variables(self) -> List[Node]:
        return list(self._variables)

    @property
    def variable_names(self) -> List[str]:
        return [v.name for v in self._variables]

    @property
    def alpha(self) -> float:
        return self._alpha

    def get_variable(self, name: str) -> Node:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(f"Variable not in the test's domain: {name}") from None

    def _resolve(self, v: NodeLike) -> Node:
        return self.get_variable(v if isinstance(v, str) else v.name)

    def check_independence(
        self, x: NodeLike, y: NodeLike, z: Sequence[NodeLike] = ()
    ) -> IndependenceResult:
        x, y = self._resolve(x), self._resolve(y)
        zs = [self._resolve(v) for v in z]
        if x == y:
            raise ConfigurationError(f"Cannot test a variable against itself: {x}")
        if x in zs or y in zs:
            raise ConfigurationError(f"Conditioning set contains a tested variable: {x}, {y} | {zs}")

        a, b = sorted((x.name, y.name))
        key = (a, b, tuple(sorted(v.name for v in zs)))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            result = self._check(x, y, zs)
        except IndependenceTestError as e:
            log.debug("Test failed for %s _||_ %s | %s: %s", x, y, [v.name for v in zs], e)
            result = IndependenceResult(False, float("nan"), failed=True)

        with self._lock:
            self.num_tests += 1
            if result.failed:
                self.num_failures += 1
        self._cache[key] = result
        return result

    def is_independent(self, x: NodeLike, y: NodeLike, z: Sequence[NodeLike] = ()) -> bool:
        return self.check_independence(x, y, z).independent

    @abstractmethod
    def _check(self, x: Node, y: Node, z: List[Node]) -> IndependenceResult:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(alpha={self._alpha}, variables={len(self._variables)})"


def _check_alpha(alpha: float) -> float:
    alpha = float(alpha)
    if not (0.0 < alpha < 1.0):
        raise ConfigurationError(f"alpha must be in (0, 1): {alpha}")
    return alpha


# --------------------------------------------------------------------------------------
# Fisher Z (continuous)
# --------------------------------------------------------------------------------------

class FisherZTest(IndependenceTest):
    """
    Partial-correlation test under (approx.) Gaussian assumptions.

    Parameters
    ----------
    data : DataFrame or ndarray [N, D]
        Continuous data (rows = samples).
    alpha : float
        Significance level; p >= alpha is judged independent.
    variables : list[str], optional
        Column subset (DataFrame) or names (ndarray; default X0..X{D-1}).
    max_condition : float
        Correlation submatrices with a larger condition number count as singular.
    """

    name = "fisher_z"

    def __init__(
        self,
        data: DataLike,
        alpha: float = 0.01,
        variables: Optional[Sequence[str]] = None,
        max_condition: float = 1e10,
    ):
        df = _as_frame(data, variables)
        for col in df.columns:
            s = df[col]
            if (
                isinstance(s.dtype, pd.CategoricalDtype)
                or pd.api.types.is_bool_dtype(s)
                or not pd.api.types.is_numeric_dtype(s)
            ):
                raise DataTypeError(f"Fisher Z needs continuous data; column {col!r} is {s.dtype}.")
        X = df.to_numpy(dtype=float)
        if not np.all(np.isfinite(X)):
            raise DataTypeError("Fisher Z data contains missing or infinite values.")
        super().__init__(nodes_from_names(df.columns), _check_alpha(alpha))
        self.sample_size = X.shape[0]
        self.max_condition = float(max_condition)
        self._col = {name: i for i, name in enumerate(df.columns)}
        with np.errstate(invalid="ignore", divide="ignore"):
            self._corr = np.corrcoef(X, rowvar=False)

    def partial_correlation(self, x: Node, y: Node, z: Sequence[Node]) -> float:
        idx = [self._col[x.name], self._col[y.name]] + [self._col[v.name] for v in z]
        sub = self._corr[np.ix_(idx, idx)]
        if not np.all(np.isfinite(sub)):
            raise IndependenceTestError("Correlation undefined (constant column).")
        if len(idx) == 2:
            return float(sub[0, 1])
        if np.linalg.cond(sub) > self.max_condition:
            raise IndependenceTestError(f"Singular correlation submatrix for {[v.name for v in z]}.")
        try:
            P = np.linalg.inv(sub)
        except np.linalg.LinAlgError as e:
            raise IndependenceTestError(str(e)) from e
        return float(-P[0, 1] / math.sqrt(P[0, 0] * P[1, 1]))

    def _check(self, x: Node, y: Node, z: List[Node]) -> IndependenceResult:
        dof = self.sample_size - len(z) - 3
        if dof <= 0:
            raise IndependenceTestError(f"Sample size {self.sample_size} too small for |Z|={len(z)}.")
        r = float(np.clip(self.partial_correlation(x, y, z), -0.999999, 0.999999))
        fz = 0.5 * math.log((1 + r) / (1 - r)) * math.sqrt(dof)
        p = float(2.0 * norm.sf(abs(fz)))
        return IndependenceResult(p >= self.alpha, p)


# --------------------------------------------------------------------------------------
# G-square (discrete)
# --------------------------------------------------------------------------------------

class GSquareTest(IndependenceTest):
    """
    Likelihood-ratio test of conditional independence for discrete data.

    G² and its degrees of freedom are summed over the strata of the conditioning
    set; rows/columns that are empty inside a stratum do not add degrees of freedom.
    With zero degrees of freedom the pair is judged independent (p = 1).
    """

    name = "g_square"

    def __init__(self, data: DataLike, alpha: float = 0.01, variables: Optional[Sequence[str]] = None):
        df = _as_frame(data, variables)
        codes = {}
        for col in df.columns:
            s = df[col]
            if s.isna().any():
                raise DataTypeError(f"G-square data contains missing values in {col!r}.")
            if pd.api.types.is_float_dtype(s) and not np.all(np.equal(np.mod(s.to_numpy(), 1), 0)):
                raise DataTypeError(f"G-square needs discrete data; column {col!r} has non-integer values.")
            codes[col], _ = pd.factorize(s, sort=True)
        super().__init__(nodes_from_names(df.columns), _check_alpha(alpha))
        self.sample_size = len(df)
        self._codes = {k: np.asarray(v, dtype=np.int64) for k, v in codes.items()}
        self._levels = {k: int(v.max()) + 1 if len(v) else 0 for k, v in self._codes.items()}

    def g_square(self, x: Node, y: Node, z: Sequence[Node]) -> Tuple[float, int]:
        xs, ys = self._codes[x.name], self._codes[y.name]
        cx, cy = self._levels[x.name], self._levels[y.name]
        if z:
            Z = np.stack([self._codes[v.name] for v in z], axis=1)
            _, strata = np.unique(Z, axis=0, return_inverse=True)
            strata = np.asarray(strata).reshape(-1)
        else:
            strata = np.zeros(len(xs), dtype=np.int64)

        g, dof = 0.0, 0
        for s in np.unique(strata):
            mask = strata == s
            table = np.zeros((cx, cy))
            np.add.at(table, (xs[mask], ys[mask]), 1.0)
            rows, cols, n = table.sum(axis=1), table.sum(axis=0), table.sum()
            dof += max(0, (int((rows > 0).sum()) - 1) * (int((cols > 0).sum()) - 1))
            expected = np.outer(rows, cols) / n
            nz = table > 0
            g += 2.0 * float(np.sum(table[nz] * np.log(table[nz] / expected[nz])))
        return g, dof

    def _check(self, x: Node, y: Node, z: List[Node]) -> IndependenceResult:
        g, dof = self.g_square(x, y, z)
        if dof == 0:
            return IndependenceResult(True, 1.0)
        p = float(chi2.sf(g, dof))
        if not math.isfinite(p):
            raise IndependenceTestError(f"Non-finite p-value (G={g}, dof={dof}).")
        return IndependenceResult(p >= self.alpha, p)


# --------------------------------------------------------------------------------------
# m-separation oracle
# --------------------------------------------------------------------------------------

class MSeparationTest(IndependenceTest):
    """
    Oracle test: x _||_ y | z iff x and y are m-separated by z in `graph`.

    Latent nodes of the graph take part in m-separation but are not exposed as
    variables unless listed explicitly.
    """

    name = "m_separation"

    def __init__(self, graph: Graph, variables: Optional[Sequence[NodeLike]] = None):
        self.graph = graph
        if variables is None:
            nodes = graph.measured_nodes()
        else:
            nodes = [graph.get_node(v if isinstance(v, str) else v.name) for v in variables]
        super().__init__(nodes, alpha=0.5)

    def _check(self, x: Node, y: Node, z: List[Node]) -> IndependenceResult:
        indep = is_m_separated(self.graph, x, y, z)
        return IndependenceResult(indep, 1.0 if indep else 0.0)


# --------------------------------------------------------------------------------------
# Registry
# --------------------------------------------------------------------------------------

class IndTestType(str, Enum):
    FISHER_Z = "fisher_z"
    G_SQUARE = "g_square"
    M_SEPARATION = "m_separation"


def _needs_data(kind: IndTestType, data: Optional[DataLike]) -> DataLike:
    if data is None:
        raise ConfigurationError(f"Test '{kind.value}' needs a dataset.")
    return data


_REGISTRY: Dict[IndTestType, Callable[..., IndependenceTest]] = {
    IndTestType.FISHER_Z: lambda data, graph, alpha, variables: FisherZTest(
        _needs_data(IndTestType.FISHER_Z, data), alpha=alpha, variables=variables
    ),
    IndTestType.G_SQUARE: lambda data, graph, alpha, variables: GSquareTest(
        _needs_data(IndTestType.G_SQUARE, data), alpha=alpha, variables=variables
    ),
    IndTestType.M_SEPARATION: lambda data, graph, alpha, variables: MSeparationTest(graph, variables)
    if graph is not None
    else _raise(ConfigurationError("Test 'm_separation' needs a true graph.")),
}


def _raise(err: Exception):
    raise err


def parse_test_type(kind: Union[str, IndTestType]) -> IndTestType:
    try:
        return IndTestType(kind) if not isinstance(kind, IndTestType) else kind
    except ValueError:
        valid = ", ".join(t.value for t in IndTestType)
        raise ConfigurationError(f"Unknown independence test {kind!r}. Valid: {valid}") from None


def make_independence_test(
    kind: Union[str, IndTestType],
    data: Optional[DataLike] = None,
    graph: Optional[Graph] = None,
    alpha: float = 0.01,
    variables: Optional[Sequence[str]] = None,
) -> IndependenceTest:
    """
    Create an independence test by registry key.

    >>> make_independence_test("fisher_z", data=df, alpha=0.05)
    >>> make_independence_test(IndTestType.M_SEPARATION, graph=true_dag)
    """
    t = parse_test_type(kind)
    return _REGISTRY[t](data, graph, alpha, variables)
