"""
Finite-key secure key rate for BB84 session records.

Computes the secure bit rate of a QKD session from its sifted key rate,
QBER, block size and security parameters:

    R_secure_bits = N (1 - h2(Q)) - N h2(Q) beta - Delta
    Delta         = 2 log2(1/eps_cor) + 4 log2(1/(2 eps_sec)) sqrt(N Q (1-Q))
    R_secure_bps  = max(0, R_secure_bits / N * S)

Every stage appends to an execution trace. Failures (missing inputs, QBER
over the BB84 threshold, arithmetic errors) are captured in the result
instead of being raised, together with the trace recorded up to that point.

References:
- Tomamichel et al., "Tight finite-key analysis for quantum cryptography"
  Nature Communications 3, 634 (2012)
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .helpers import h2, is_number
from .schema import get_path

logger = logging.getLogger(__name__)

EQUATION = "R_secure_bps = (S/N) * [N * (1 - h₂(Q)) - (N * h₂(Q) * β) - Δ]"
DEFAULT_EC_EFFICIENCY = 1.1  # typical Cascade reconciliation overhead
QBER_THRESHOLD_BB84 = 0.11

TraceValue = Union[int, float, str]


class SKRError(ValueError):
    """Base class for failures captured by :func:`compute_skr`."""


class MissingFieldsError(SKRError):
    """Required inputs are unresolved after defaults were applied."""

    def __init__(self, missing: Sequence[str]):
        self.missing = tuple(missing)
        super().__init__(
            f"Input validation failed: Missing required fields: {', '.join(self.missing)}."
        )


class SecurityThresholdExceeded(SKRError):
    """QBER is above the protocol's error threshold."""

    def __init__(self, qber: float, threshold: float = QBER_THRESHOLD_BB84):
        self.qber = qber
        self.threshold = threshold
        super().__init__(
            f"QBER ({qber}) exceeds theoretical security limit for BB84 ({threshold}). "
            "Secure key rate is zero."
        )


class ComputationError(SKRError):
    """Any other arithmetic or domain failure."""


@dataclass(frozen=True)
class FiniteKeyDefaults:
    """Fallbacks and limits applied while resolving calculator inputs.

    Attributes
    ----------
    ec_efficiency : float
        Beta used when ``dv_specific.ec_efficiency_beta`` is absent.
        Default: 1.1
    qber_threshold : float
        QBER above which no secure key can be extracted. Default: 0.11
    """
    ec_efficiency: float = DEFAULT_EC_EFFICIENCY
    qber_threshold: float = QBER_THRESHOLD_BB84

    def __post_init__(self):
        if self.ec_efficiency < 1.0:
            raise ValueError(f"ec_efficiency must be >= 1.0, got {self.ec_efficiency}")
        if not 0.0 < self.qber_threshold < 0.5:
            raise ValueError(f"qber_threshold must be in (0, 0.5), got {self.qber_threshold}")


@dataclass(frozen=True)
class SKRTraceEntry:
    step: str
    value: TraceValue
    formula: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"step": self.step, "value": self.value}
        if self.formula is not None:
            out["formula"] = self.formula
        return out


@dataclass(frozen=True)
class SKRInputs:
    S_bps: float
    Q: float
    beta: float
    N: float
    eps_sec: float
    eps_cor: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "S_bps": self.S_bps,
            "Q": self.Q,
            "beta": self.beta,
            "N": self.N,
            "eps_sec": self.eps_sec,
            "eps_cor": self.eps_cor,
        }


@dataclass(frozen=True)
class SKRResult:
    """Outcome of one finite-key calculation.

    ``R_secure_bps`` is None exactly when ``error`` is set; in that case
    ``inputs`` and ``intermediates`` are empty and ``trace`` holds the
    entries recorded before the failure.
    """
    equation: str
    inputs: Dict[str, Any]
    intermediates: Dict[str, float]
    R_secure_bps: Optional[float]
    trace: Tuple[SKRTraceEntry, ...] = ()
    error: Optional[str] = None
    error_type: Optional[str] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "equation": self.equation,
            "inputs": dict(self.inputs),
            "intermediates": dict(self.intermediates),
            "R_secure_bps": self.R_secure_bps,
        }
        if self.error is not None:
            out["error"] = self.error
        out["trace"] = [entry.to_dict() for entry in self.trace]
        return out


def _number(name: str, value: Any) -> float:
    if not is_number(value):
        raise ComputationError(f"{name} must be numeric, got {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise ComputationError(f"{name} must be finite, got {value}")
    return value


def resolve_inputs(
    record: Mapping[str, Any],
    trace: List[SKRTraceEntry],
    defaults: FiniteKeyDefaults,
) -> SKRInputs:
    """
    Read calculator inputs from a canonical record, applying defaults.

    Substitutions (single epsilon, default beta) are appended to ``trace``
    in the order they are made.

    Raises
    ------
    MissingFieldsError
        Listing every required input that is still unresolved.
    ComputationError
        If a resolved input is not a finite number.
    """
    S_bps = get_path(record, "security.sifted_key_rate_bps")
    Q = get_path(record, "security.qber_total")
    N = get_path(record, "security.sifted_bits")
    eps_sec = get_path(record, "security.epsilon_sec")
    eps_cor = get_path(record, "security.epsilon_cor")
    single_eps = get_path(record, "security.epsilon")

    if eps_sec is None and eps_cor is None and single_eps is not None:
        eps_sec = single_eps
        eps_cor = single_eps
        trace.append(SKRTraceEntry("Epsilon", single_eps, "Used single epsilon for both sec/cor"))

    beta = get_path(record, "dv_specific.ec_efficiency_beta")
    if beta is None:
        beta = defaults.ec_efficiency
        trace.append(SKRTraceEntry("EC Efficiency (β)", beta, "Default value assumed"))

    missing = [
        name
        for name, value in (
            ("security.sifted_key_rate_bps", S_bps),
            ("security.qber_total", Q),
            ("security.sifted_bits", N),
            ("security.epsilon_sec (or epsilon)", eps_sec),
            ("security.epsilon_cor (or epsilon)", eps_cor),
        )
        if value is None
    ]
    if missing:
        raise MissingFieldsError(missing)

    return SKRInputs(
        S_bps=_number("S_bps", S_bps),
        Q=_number("Q", Q),
        beta=_number("beta", beta),
        N=_number("N", N),
        eps_sec=_number("eps_sec", eps_sec),
        eps_cor=_number("eps_cor", eps_cor),
    )


def finite_size_penalty(n: float, qber: float, eps_sec: float, eps_cor: float) -> float:
    """Delta = 2 log2(1/eps_cor) + 4 log2(1/(2 eps_sec)) sqrt(N Q (1-Q))."""
    return 2 * math.log2(1 / eps_cor) + 4 * math.log2(1 / (2 * eps_sec)) * math.sqrt(n * qber * (1 - qber))


def _calculate(
    record: Mapping[str, Any],
    trace: List[SKRTraceEntry],
    defaults: FiniteKeyDefaults,
) -> SKRResult:
    inputs = resolve_inputs(record, trace, defaults)
    S, Q, beta, N = inputs.S_bps, inputs.Q, inputs.beta, inputs.N

    trace.append(SKRTraceEntry("Sifted Rate (S)", S, "Input"))
    trace.append(SKRTraceEntry("QBER (Q)", Q, "Input"))
    trace.append(SKRTraceEntry("EC Efficiency (β)", beta, "Input or Default"))
    trace.append(SKRTraceEntry("Block Size (N)", N, "Input"))
    trace.append(SKRTraceEntry("ε_sec", inputs.eps_sec, "Input"))
    trace.append(SKRTraceEntry("ε_cor", inputs.eps_cor, "Input"))

    if Q > defaults.qber_threshold:
        raise SecurityThresholdExceeded(Q, defaults.qber_threshold)
    # log2(1/eps) is undefined for eps <= 0
    for name, eps in (("eps_sec", inputs.eps_sec), ("eps_cor", inputs.eps_cor)):
        if eps <= 0:
            raise ComputationError(f"{name} must be > 0, got {eps}")

    h2_Q = h2(Q)
    trace.append(SKRTraceEntry("h₂(Q)", h2_Q, "-Q*log₂(Q) - (1-Q)*log₂(1-Q)"))

    leakage_ec_bits = N * h2_Q * beta
    trace.append(SKRTraceEntry("Leak_EC", leakage_ec_bits, "N * h₂(Q) * β"))

    finite_penalty_bits = finite_size_penalty(N, Q, inputs.eps_sec, inputs.eps_cor)
    trace.append(SKRTraceEntry("Δ (Penalty)", finite_penalty_bits, "Finite-size penalty term"))

    R_secure_bits = N * (1 - h2_Q) - leakage_ec_bits - finite_penalty_bits
    trace.append(SKRTraceEntry("R_secure_bits", R_secure_bits, "N*(1 - h₂(Q)) - Leak_EC - Δ"))

    R_secure_bps = (R_secure_bits / N) * S
    if R_secure_bps < 0:
        R_secure_bps = 0.0
    trace.append(SKRTraceEntry("R_secure_bps", R_secure_bps, "(R_secure_bits / N) * S_bps (clamped to 0)"))

    return SKRResult(
        equation=EQUATION,
        inputs=inputs.to_dict(),
        intermediates={
            "h2_Q": h2_Q,
            "leakage_ec_bits": leakage_ec_bits,
            "finite_penalty_bits": finite_penalty_bits,
        },
        R_secure_bps=R_secure_bps,
        trace=tuple(trace),
    )


def compute_skr(
    record: Mapping[str, Any],
    defaults: Optional[FiniteKeyDefaults] = None,
) -> SKRResult:
    """
    Compute the finite-key secure key rate of a canonical record.

    Parameters
    ----------
    record : Mapping
        Canonical record; reads ``security`` and ``dv_specific``.
    defaults : FiniteKeyDefaults, optional
        Fallback beta and QBER threshold. Uses module defaults if None.

    Returns
    -------
    SKRResult
        Never raises for bad record contents: failures are reported in
        ``error`` with ``R_secure_bps`` set to None.
    """
    if defaults is None:
        defaults = FiniteKeyDefaults()
    trace: List[SKRTraceEntry] = []
    try:
        return _calculate(record, trace, defaults)
    except SKRError as exc:
        failure: SKRError = exc
    except (ArithmeticError, ValueError, TypeError) as exc:
        failure = ComputationError(str(exc) or type(exc).__name__)

    logger.debug("SKR calculation failed (%s): %s", type(failure).__name__, failure)
    return SKRResult(
        equation=EQUATION,
        inputs={},
        intermediates={},
        R_secure_bps=None,
        trace=tuple(trace),
        error=str(failure),
        error_type=type(failure).__name__,
    )
