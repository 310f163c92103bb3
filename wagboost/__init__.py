"""wagboost: Wagging and Stochastic Gradient Boosting over pluggable base learners."""

from .booster import StochasticGradientBoosting
from .config import BoostingConfig, WaggingConfig
from .learners import CLASSIFY, REGRESS, BaseLearner, SklearnLearner
from .wagging import Wagging

__all__ = [
    "BaseLearner",
    "BoostingConfig",
    "CLASSIFY",
    "REGRESS",
    "SklearnLearner",
    "StochasticGradientBoosting",
    "Wagging",
    "WaggingConfig",
]
