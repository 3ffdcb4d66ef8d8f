"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .level import TechnicianLevelFactory, bronze_silver_gold
from .fault import FaultFactory

__all__ = [
    "TechnicianLevelFactory",
    "bronze_silver_gold",
    "FaultFactory",
]
