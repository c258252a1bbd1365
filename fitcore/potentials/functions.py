"""
Closed-form functions for analytic potentials.

Every function maps an abscissa array and a parameter vector to a tuple
(value, derivative). The registry is keyed by name so potentials can be
declared from plain data.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

Evaluator = Callable[
    [NDArray[np.floating], NDArray[np.floating]],
    tuple[NDArray[np.floating], NDArray[np.floating]],
]


@dataclass(frozen=True)
class AnalyticFunction:
    """
    Named closed-form function.

    Attributes:
        name: Registry name.
        parameters: Parameter names, in vector order.
        evaluate: Callable (x, params) -> (value, derivative).
    """

    name: str
    parameters: tuple[str, ...]
    evaluate: Evaluator

    @property
    def n_parameters(self) -> int:
        """Number of parameters."""
        return len(self.parameters)


def _constant(x, p):
    return np.full_like(x, p[0]), np.zeros_like(x)


def _lj(x, p):
    # V(r) = 4 * epsilon * [(sigma/r)^12 - (sigma/r)^6]
    epsilon, sigma = p
    s6 = (sigma / x) ** 6
    value = 4.0 * epsilon * (s6 * s6 - s6)
    grad = -24.0 * epsilon * (2.0 * s6 * s6 - s6) / x
    return value, grad


def _morse(x, p):
    # V(r) = D_e * [(1 - exp(-a (r - r_e)))^2 - 1]
    d_e, a, r_e = p
    e = np.exp(-a * (x - r_e))
    value = d_e * ((1.0 - e) ** 2 - 1.0)
    grad = 2.0 * d_e * a * e * (1.0 - e)
    return value, grad


def _exp_decay(x, p):
    # V(r) = A * exp(-B (r - r0))
    amplitude, decay, r0 = p
    value = amplitude * np.exp(-decay * (x - r0))
    return value, -decay * value


def _power_decay(x, p):
    # V(r) = A * r^(-B)
    amplitude, exponent = p
    value = amplitude * x ** (-exponent)
    return value, -exponent * value / x


def _buckingham(x, p):
    # V(r) = A * exp(-r / rho) - C / r^6
    amplitude, rho, c6 = p
    e = amplitude * np.exp(-x / rho)
    value = e - c6 / x**6
    grad = -e / rho + 6.0 * c6 / x**7
    return value, grad


def _eopp(x, p):
    # Empirical oscillating pair potential
    # V(r) = C1 / r^eta1 + C2 / r^eta2 * cos(k r + phi)
    c1, eta1, c2, eta2, k, phase = p
    t1 = c1 / x**eta1
    t2 = c2 / x**eta2
    cos = np.cos(k * x + phase)
    sin = np.sin(k * x + phase)
    value = t1 + t2 * cos
    grad = -eta1 * t1 / x - eta2 * t2 * cos / x - k * t2 * sin
    return value, grad


def _csw(x, p):
    # V(r) = (1 + a1 cos(alpha r) + a2 sin(alpha r)) / r^beta
    a1, a2, alpha, beta = p
    cos = np.cos(alpha * x)
    sin = np.sin(alpha * x)
    numerator = 1.0 + a1 * cos + a2 * sin
    dnumerator = alpha * (a2 * cos - a1 * sin)
    denominator = x**-beta
    value = numerator * denominator
    grad = dnumerator * denominator - beta * value / x
    return value, grad


def _universal(x, p):
    # Universal embedding function
    # F(n) = F0 * [q/(q-p) n^p - p/(q-p) n^q] + F1 * n
    f0, pexp, qexp, f1 = p
    xs = np.maximum(x, 0.0)
    denom = qexp - pexp
    value = f0 * (qexp / denom * xs**pexp - pexp / denom * xs**qexp) + f1 * xs
    with np.errstate(divide="ignore", invalid="ignore"):
        grad = (
            f0 * pexp * qexp / denom * (xs ** (pexp - 1.0) - xs ** (qexp - 1.0)) + f1
        )
    return value, grad


def _sqrt(x, p):
    # Finnis-Sinclair embedding F(n) = -A sqrt(n)
    amplitude = p[0]
    xs = np.maximum(x, 0.0)
    root = np.sqrt(xs)
    with np.errstate(divide="ignore"):
        grad = -0.5 * amplitude / root
    return -amplitude * root, grad


def _poly2(x, p):
    # a + b x + c x^2
    a, b, c = p
    return a + b * x + c * x * x, b + 2.0 * c * x


def _sw_pair(x, p):
    # Stillinger-Weber two-body term (sigma = 1)
    # V(r) = A (B r^-p - r^-q) exp(delta / (r - a)) for r < a
    amplitude, b, pexp, qexp, delta, a = p
    inside = x < a
    xs = np.where(inside, x, 0.5 * a)
    e = np.where(inside, np.exp(delta / (xs - a)), 0.0)
    power = b * xs**-pexp - xs**-qexp
    dpower = -pexp * b * xs ** (-pexp - 1.0) + qexp * xs ** (-qexp - 1.0)
    value = amplitude * power * e
    grad = amplitude * e * (dpower - power * delta / (xs - a) ** 2)
    return np.where(inside, value, 0.0), np.where(inside, grad, 0.0)


def _sw_radial(x, p):
    # f(r) = exp(gamma / (r - a)) for r < a
    gamma, a = p
    inside = x < a
    xs = np.where(inside, x, 0.5 * a)
    e = np.exp(gamma / (xs - a))
    grad = -gamma * e / (xs - a) ** 2
    return np.where(inside, e, 0.0), np.where(inside, grad, 0.0)


def _sw_angular(x, p):
    # g(cos) = lambda * (cos + 1/3)^2
    lam = p[0]
    shifted = x + 1.0 / 3.0
    return lam * shifted * shifted, 2.0 * lam * shifted


def _tersoff_fc(x, cutoff, width):
    # fc(r) = 1/2 - 1/2 sin(pi/2 (r - R) / D) for |r - R| < D
    arg = 0.5 * np.pi * (x - cutoff) / width
    inner = x < cutoff - width
    shell = ~inner & (x < cutoff + width)
    value = np.where(inner, 1.0, np.where(shell, 0.5 - 0.5 * np.sin(arg), 0.0))
    grad = np.where(shell, -0.25 * np.pi / width * np.cos(arg), 0.0)
    return value, grad


def _tersoff_cutoff(x, p):
    return _tersoff_fc(x, p[0], p[1])


def _tersoff_exp(x, p):
    # fc(r) * A * exp(-lambda r); a negative A gives the attractive branch
    amplitude, decay, cutoff, width = p
    fc, dfc = _tersoff_fc(x, cutoff, width)
    e = amplitude * np.exp(-decay * x)
    return fc * e, dfc * e - decay * fc * e


def _tersoff_angular(x, p):
    # g(cos) = gamma * (1 + c^2/d^2 - c^2 / (d^2 + (h - cos)^2))
    gamma, c, d, h = p
    q = d * d + (h - x) ** 2
    value = gamma * (1.0 + c * c / (d * d) - c * c / q)
    grad = -2.0 * gamma * c * c * (h - x) / (q * q)
    return value, grad


def _tersoff_bond(x, p):
    # b(zeta) = (1 + (beta zeta)^n)^(-1/(2n))
    beta, n = p
    xs = np.maximum(x, 0.0)
    t = (beta * xs) ** n
    value = (1.0 + t) ** (-0.5 / n)
    with np.errstate(divide="ignore", invalid="ignore"):
        grad = -0.5 * beta**n * xs ** (n - 1.0) * (1.0 + t) ** (-0.5 / n - 1.0)
    return value, grad


FUNCTIONS: dict[str, AnalyticFunction] = {
    f.name: f
    for f in (
        AnalyticFunction("constant", ("c",), _constant),
        AnalyticFunction("lj", ("epsilon", "sigma"), _lj),
        AnalyticFunction("morse", ("D_e", "a", "r_e"), _morse),
        AnalyticFunction("exp_decay", ("A", "B", "r0"), _exp_decay),
        AnalyticFunction("power_decay", ("A", "B"), _power_decay),
        AnalyticFunction("buckingham", ("A", "rho", "C"), _buckingham),
        AnalyticFunction("eopp", ("C1", "eta1", "C2", "eta2", "k", "phi"), _eopp),
        AnalyticFunction("csw", ("a1", "a2", "alpha", "beta"), _csw),
        AnalyticFunction("universal", ("F0", "p", "q", "F1"), _universal),
        AnalyticFunction("sqrt", ("A",), _sqrt),
        AnalyticFunction("poly2", ("a", "b", "c"), _poly2),
        AnalyticFunction("sw_pair", ("A", "B", "p", "q", "delta", "a"), _sw_pair),
        AnalyticFunction("sw_radial", ("gamma", "a"), _sw_radial),
        AnalyticFunction("sw_angular", ("lambda",), _sw_angular),
        AnalyticFunction("tersoff_cutoff", ("R", "D"), _tersoff_cutoff),
        AnalyticFunction("tersoff_exp", ("A", "lambda", "R", "D"), _tersoff_exp),
        AnalyticFunction("tersoff_angular", ("gamma", "c", "d", "h"), _tersoff_angular),
        AnalyticFunction("tersoff_bond", ("beta", "n"), _tersoff_bond),
    )
}


def get_function(name: str) -> AnalyticFunction:
    """Look up an analytic function by name."""
    try:
        return FUNCTIONS[name]
    except KeyError:
        raise ValueError(
            f"Unknown analytic function: {name}. Available: {', '.join(sorted(FUNCTIONS))}"
        ) from None


def smooth_cutoff(
    x: NDArray[np.floating], cutoff: float, width: float
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Smooth cutoff factor psi((r - rc) / h) = y^4 / (1 + y^4) for r < rc.

    Returns:
        Tuple (factor, derivative with respect to r); zero beyond the cutoff.
    """
    y = (x - cutoff) / width
    y4 = y**4
    inside = x < cutoff
    factor = np.where(inside, y4 / (1.0 + y4), 0.0)
    grad = np.where(inside, 4.0 * y**3 / (1.0 + y4) ** 2 / width, 0.0)
    return factor, grad
