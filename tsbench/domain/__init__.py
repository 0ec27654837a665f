"""
Domain package for the time-series storage benchmark.

Exports the measurement record and the synthetic data generator shared by all
backends. Keep this package focused on data definitions and validation concerns.
"""

from tsbench.domain.fake_data import BASE_TIME, INTERVAL_MS, generate_fake_data
from tsbench.domain.models import FIELDS, DataObject, NaturalKey, collapse_duplicates

__all__ = [
    "BASE_TIME",
    "DataObject",
    "FIELDS",
    "INTERVAL_MS",
    "NaturalKey",
    "collapse_duplicates",
    "generate_fake_data",
]
