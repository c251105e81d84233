"""Enumerations shared by models, schemas, and services."""

import enum


class UserRole(enum.IntEnum):
    ADMIN = 1
    OPERATIONAL = 2


class Location(str, enum.Enum):
    GENSET = "GENSET"
    TUG_ASSIST = "TUG_ASSIST"


class MovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
