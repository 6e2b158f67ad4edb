"""Enumerations for the precise-varcall engine.

Example:
    >>> from precise_varcall.enums import IndelErrorModelName
    >>> IndelErrorModelName("logLinear") is IndelErrorModelName.LOG_LINEAR
    True
"""

from enum import IntEnum, StrEnum


class IndelErrorModelName(StrEnum):
    """Built-in indel error model presets.

    Attributes:
        LOG_LINEAR: Homopolymer-only log-linear ramp
        ADAPTIVE_DEFAULT: Non-STR baseline plus adaptive homopolymer and
            dinucleotide ramps
    """

    LOG_LINEAR = "logLinear"
    ADAPTIVE_DEFAULT = "adaptiveDefault"


class IndelType(StrEnum):
    """Indel classification used for error rate lookup."""

    INSERT = "insert"
    DELETE = "delete"
    COMPLEX = "complex"

    def reverse(self) -> "IndelType":
        if self is IndelType.INSERT:
            return IndelType.DELETE
        if self is IndelType.DELETE:
            return IndelType.INSERT
        msg = "complex indels have no reverse type"
        raise ValueError(msg)


class BaseId(IntEnum):
    """Nucleotide index used by pileup counts."""

    A = 0
    C = 1
    G = 2
    T = 3

    @classmethod
    def from_base(cls, base: str) -> "BaseId":
        try:
            return cls[base.upper()]
        except KeyError as exc:
            msg = f"unknown base: {base!r}"
            raise ValueError(msg) from exc


N_BASE = len(BaseId)


class VcfFilter(IntEnum):
    """Filters that can be attached to a locus.

    The integer value fixes the order in which labels are reported.
    """

    HIGH_DEPTH = 0
    LOW_EVS = 1
    BC_NOISE = 2
    SPAN_DEL = 3
    QSS_REF = 4
    REPEAT = 5
    IHPOL = 6
    INDEL_BC_NOISE = 7
    QSI_REF = 8
    NONREF = 9

    @property
    def label(self) -> str:
        return _FILTER_LABELS[self]


_FILTER_LABELS = {
    VcfFilter.HIGH_DEPTH: "HighDepth",
    VcfFilter.LOW_EVS: "LowEVS",
    VcfFilter.BC_NOISE: "BCNoise",
    VcfFilter.SPAN_DEL: "SpanDel",
    VcfFilter.QSS_REF: "QSS_ref",
    VcfFilter.REPEAT: "Repeat",
    VcfFilter.IHPOL: "iHpol",
    VcfFilter.INDEL_BC_NOISE: "BCNoise",
    VcfFilter.QSI_REF: "QSI_ref",
    VcfFilter.NONREF: "Nonref",
}


__all__ = [
    "IndelErrorModelName",
    "IndelType",
    "BaseId",
    "N_BASE",
    "VcfFilter",
]
