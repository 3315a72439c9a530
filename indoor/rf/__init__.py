"""
Radio frequency models and radio source descriptions.

This module provides:
- Log-distance path-loss model and dBm/power conversions
- RadioSource value type for WiFi access points and Bluetooth beacons
"""

from .signal_model import (
    DEFAULT_FREQUENCY,
    DEFAULT_PATH_LOSS_EXPONENT,
    SPEED_OF_LIGHT,
    dbm_to_power,
    distance_from_power,
    power_to_dbm,
    received_power,
    received_power_dbm,
    wavelength_gain_db,
)
from .sources import RadioSource, RadioSourceType

__all__ = [
    # Signal model
    "SPEED_OF_LIGHT",
    "DEFAULT_FREQUENCY",
    "DEFAULT_PATH_LOSS_EXPONENT",
    "dbm_to_power",
    "power_to_dbm",
    "wavelength_gain_db",
    "received_power",
    "received_power_dbm",
    "distance_from_power",
    # Radio sources
    "RadioSource",
    "RadioSourceType",
]
