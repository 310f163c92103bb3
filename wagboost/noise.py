"""Per-row weight noise strategies used by Wagging."""

from __future__ import annotations

from typing import Callable

import torch

NoiseStrategy = Callable[[torch.Generator, int], torch.Tensor]


def normal_noise(mean: float = 1.0, std: float = 2.0, floor: float = 1e-6) -> NoiseStrategy:
    """Gaussian weights ``N(mean, std)``; draws below ``floor`` are raised to ``floor``."""

    if std <= 0.0:
        raise ValueError("std must be positive")
    if floor <= 0.0:
        raise ValueError("floor must be positive")

    def draw(generator: torch.Generator, n: int) -> torch.Tensor:
        w = torch.empty(n, dtype=torch.float64).normal_(float(mean), float(std), generator=generator)
        return w.clamp_min_(float(floor))

    draw.__name__ = f"normal_noise(mean={mean}, std={std}, floor={floor})"
    return draw


def exponential_noise(rate: float = 1.0) -> NoiseStrategy:
    """Exponential weights with the given ``rate`` (mean ``1 / rate``)."""

    if rate <= 0.0:
        raise ValueError("rate must be positive")

    def draw(generator: torch.Generator, n: int) -> torch.Tensor:
        return torch.empty(n, dtype=torch.float64).exponential_(float(rate), generator=generator)

    draw.__name__ = f"exponential_noise(rate={rate})"
    return draw


def poisson_noise(rate: float = 1.0) -> NoiseStrategy:
    """Poisson counts; ``rate=1`` matches the multiplicities of a bootstrap sample."""

    if rate <= 0.0:
        raise ValueError("rate must be positive")

    def draw(generator: torch.Generator, n: int) -> torch.Tensor:
        rates = torch.full((n,), float(rate), dtype=torch.float64)
        return torch.poisson(rates, generator=generator)

    draw.__name__ = f"poisson_noise(rate={rate})"
    return draw
