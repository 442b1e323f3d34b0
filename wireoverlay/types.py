"""Shared enums."""

from enum import Enum


class Variant(str, Enum):
    THREE_POINT = "three_point"
    FOUR_POINT = "four_point"


class MarkerId(str, Enum):
    """Logical marker identity; the value is the printed label and detector key."""

    P1 = "1"
    PA = "A"
    P2 = "2"
    P3 = "3"
    P4 = "4"


class StyleKind(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"
