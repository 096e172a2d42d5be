from enum import StrEnum


class Letter(StrEnum):
    """Card column letters, in column order."""

    B = "B"
    I = "I"  # noqa: E741
    N = "N"
    G = "G"
    O = "O"  # noqa: E741
