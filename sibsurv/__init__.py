"""
sibsurv: Adult mortality estimation from sibling survival histories
"""

__version__ = "0.1.0"

from .data import SiblingHistories, SiblingDataConverter, MALE, FEMALE
from .estimation import (
    DirectEstimator,
    GakidouKingWeighter,
    SamplingFrame,
    CompletenessSchedule
)
from .models import BackgroundMortalityModel
from .simulation import SibshipSimulator, SimulationResult

__all__ = [
    "SiblingHistories",
    "SiblingDataConverter",
    "MALE",
    "FEMALE",
    "DirectEstimator",
    "GakidouKingWeighter",
    "SamplingFrame",
    "CompletenessSchedule",
    "BackgroundMortalityModel",
    "SibshipSimulator",
    "SimulationResult"
]
