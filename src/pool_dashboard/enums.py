"""Enumerations shared with the hosting database.

Values must match the stored enum labels exactly.
"""

from enum import Enum


class Role(str, Enum):
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


PRIVILEGED_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class MinerStatus(str, Enum):
    """Miner lifecycle. AUTO means the pool manages the machine."""

    AUTO = "AUTO"
    DEPLOYMENT_IN_PROGRESS = "DEPLOYMENT_IN_PROGRESS"


class SpaceStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"


class PaymentType(str, Enum):
    PAYMENT = "PAYMENT"
    ELECTRICITY_CHARGES = "ELECTRICITY_CHARGES"
    ADJUSTMENT = "ADJUSTMENT"
