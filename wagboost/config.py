"""Configuration objects for wagboost trainers."""

from __future__ import annotations

from dataclasses import dataclass, field

from .noise import NoiseStrategy, normal_noise


@dataclass(frozen=True, slots=True)
class WaggingConfig:
    """Hyper-parameters steering Wagging training.

    Parameters
    ----------
    num_members:
        Number of base learner copies trained. Must be at least 1.
    noise:
        Strategy drawing one weight per row for each member. Called as
        ``noise(generator, n)`` and must return ``n`` non-negative ``float64``
        values. Defaults to :func:`wagboost.noise.normal_noise`.
    random_state:
        Optional seed for the trainer's generator. ``None`` seeds from the
        operating system.
    """

    num_members: int = 50
    noise: NoiseStrategy = field(default_factory=normal_noise)
    random_state: int | None = None

    def __post_init__(self) -> None:
        if int(self.num_members) < 1:
            raise ValueError(f"num_members must be >= 1, got {self.num_members}")
        if not callable(self.noise):
            raise ValueError("noise must be callable as noise(generator, n)")


@dataclass(frozen=True, slots=True)
class BoostingConfig:
    """Hyper-parameters steering Stochastic Gradient Boosting.

    Parameters
    ----------
    num_stages:
        Number of boosting stages. ``0`` yields a model predicting the
        initial value only.
    learning_rate:
        Shrinkage applied to every stage's output. Must lie in ``(0, 1]``.
    subsample:
        Fraction of rows drawn without replacement for each stage. ``1.0``
        disables subsampling. Must lie in ``(0, 1]``.
    random_state:
        Optional seed controlling the subsample draws.
    """

    num_stages: int = 50
    learning_rate: float = 0.1
    subsample: float = 1.0
    random_state: int | None = None

    def __post_init__(self) -> None:
        if int(self.num_stages) < 0:
            raise ValueError(f"num_stages must be non-negative, got {self.num_stages}")
        if not (0.0 < float(self.learning_rate) <= 1.0):
            raise ValueError(f"learning_rate must lie in (0, 1], got {self.learning_rate}")
        if not (0.0 < float(self.subsample) <= 1.0):
            raise ValueError(f"subsample must lie in (0, 1], got {self.subsample}")
