from .dataframe import KaryotypeFrameBuilder
from .model import (
    Aberration,
    Alternatives,
    Breakpoint,
    ChromosomeRef,
    Clone,
    CountRange,
    DetailedSegment,
    Diagnostic,
    Event,
    KaryotypeRecord,
    Marker,
    ModalNumber,
    SexDesignation,
    SourceSpan,
)
from .parser import KaryotypeParser, parse_karyotype
from .types import (
    AberrationType,
    CloneKind,
    CompositionKind,
    DiagnosticKind,
    EventKind,
    Inheritance,
    MarkerType,
    ReferenceKind,
    SexKind,
)

__all__ = [
    "KaryotypeFrameBuilder",
    "KaryotypeParser",
    "parse_karyotype",
    "Aberration",
    "Alternatives",
    "Breakpoint",
    "ChromosomeRef",
    "Clone",
    "CountRange",
    "DetailedSegment",
    "Diagnostic",
    "Event",
    "KaryotypeRecord",
    "Marker",
    "ModalNumber",
    "SexDesignation",
    "SourceSpan",
    "AberrationType",
    "CloneKind",
    "CompositionKind",
    "DiagnosticKind",
    "EventKind",
    "Inheritance",
    "MarkerType",
    "ReferenceKind",
    "SexKind",
]
