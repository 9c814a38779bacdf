r"""
Random-walk sampler for terminal prices.

Each path applies ``horizon_days`` independent multiplicative shocks

.. math::

   S_T = S_0 \prod_{k=1}^{H} \exp\!\left(\frac{\sigma Z_k}{\sqrt{H}}\right),
   \qquad Z_k \sim \mathcal{N}(0, 1),

so the total log-return :math:`\log(S_T / S_0)` has standard deviation
:math:`\sigma` whatever the horizon :math:`H`. The horizon changes the shape of the
path, not the dispersion of the terminal price.

Standard normals come from the Box–Muller transform applied to uniforms on
:math:`(0, 1)`; exact zeros are re-drawn so the logarithm stays finite.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from numpy.random import Generator

__all__ = ["box_muller", "sample_terminal_price", "sample_terminal_prices"]


def _open_uniform(rng: Generator, size: int) -> np.ndarray:
    """Uniform draws on ``(0, 1)``: ``Generator.random`` is ``[0, 1)``, so zeros are re-rolled."""
    u = rng.random(size)
    zeros = u == 0.0
    while zeros.any():
        u[zeros] = rng.random(int(zeros.sum()))
        zeros = u == 0.0
    return u


def box_muller(rng: Generator, size: int) -> np.ndarray:
    r"""
    Draw ``size`` standard-normal variates with the Box–Muller transform.

    Parameters
    ----------
    rng : numpy.random.Generator
        Source of uniform draws.
    size : int
        Number of variates.

    Returns
    -------
    ndarray
        :math:`\sqrt{-2 \ln U}\,\cos(2 \pi V)` for independent :math:`U, V \in (0, 1)`.
    """
    u = _open_uniform(rng, size)
    v = _open_uniform(rng, size)
    return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)


def sample_terminal_price(
    start_price: float,
    volatility: float,
    horizon_days: int,
    rng: Optional[Generator] = None,
) -> float:
    r"""
    Simulate a single path and return its terminal price.

    Parameters
    ----------
    start_price : float
        Price at day zero.
    volatility : float
        Total-horizon log-return standard deviation (decimal).
    horizon_days : int
        Number of daily shocks.
    rng : numpy.random.Generator, optional
        Defaults to a freshly seeded generator.

    Returns
    -------
    float
        The price after all ``horizon_days`` shocks have been applied in order.
    """
    rng = rng if rng is not None else np.random.default_rng()
    scale = volatility / math.sqrt(horizon_days)
    price = float(start_price)
    for z in box_muller(rng, horizon_days):
        price *= math.exp(scale * z)
    return price


def sample_terminal_prices(
    n: int,
    start_price: float,
    volatility: float,
    horizon_days: int,
    rng: Optional[Generator] = None,
) -> np.ndarray:
    r"""
    Vectorized :func:`sample_terminal_price` for ``n`` independent paths.

    Returns
    -------
    ndarray of shape ``(n,)``
        Position ``i`` holds the terminal price of path ``i``.
    """
    rng = rng if rng is not None else np.random.default_rng()
    scale = volatility / math.sqrt(horizon_days)
    z = box_muller(rng, n * horizon_days).reshape(n, horizon_days)
    shocks = np.exp(scale * z)
    return float(start_price) * np.prod(shocks, axis=1)
