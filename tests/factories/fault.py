"""
Fault catalog test factory.
"""

import factory
from faker import Faker

fake = Faker()

REPAIRS = [
    "Screen replacement",
    "Battery replacement",
    "Charging port repair",
    "Speaker repair",
    "Camera module replacement",
    "Water damage treatment",
    "Software reflash",
]


class FaultFactory(factory.Factory):
    """
    Factory for generating Fault test data.

    Usage:
        fault = FaultFactory()
        fault = FaultFactory(default_price=999.0)
    """

    class Meta:
        model = dict

    id = factory.Sequence(lambda n: n + 1)
    company_id = 1
    name = factory.LazyFunction(lambda: fake.random_element(REPAIRS))
    code = factory.Sequence(lambda n: f"FLT{n:03d}")
    default_price = factory.LazyFunction(
        lambda: round(fake.pyfloat(min_value=100.0, max_value=5000.0), 2)
    )
    technician_points = 100
    is_active = True
