"""
Microsimulation of sibships and sibling survival surveys
"""

from .microsimulation import SibshipSimulator, SimulationResult

__all__ = [
    "SibshipSimulator",
    "SimulationResult"
]
