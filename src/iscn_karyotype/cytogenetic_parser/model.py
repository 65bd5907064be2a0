from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

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

T = TypeVar("T")


class FrozenModel(BaseModel):
    """Base immuable: un enregistrement n'est jamais modifié après construction"""

    model_config = ConfigDict(frozen=True)


class SourceSpan(FrozenModel):
    """Positions [start, end) dans l'entrée sans espaces"""
    start: int
    end: int


class Diagnostic(FrozenModel):
    kind: DiagnosticKind
    span: SourceSpan
    raw_text: str
    message: str = ""


class ModalNumber(FrozenModel):
    low: int
    high: int
    exact: bool = True
    approximate: bool = False
    ploidy_level: Optional[str] = None


class SexDesignation(FrozenModel):
    kind: SexKind
    chromosomes: Tuple[str, ...] = ()
    uncertain: bool = False


class ChromosomeRef(FrozenModel):
    name: str
    uncertain: bool = False
    arm: Optional[str] = None


class Breakpoint(FrozenModel):
    arm: Optional[str] = None
    band: Optional[int] = None
    subband: Optional[int] = None
    uncertain: bool = False
    terminal: bool = False
    centromere: bool = False
    upper_arm: Optional[str] = None
    upper_band: Optional[int] = None
    upper_subband: Optional[int] = None
    chromosome: Optional[str] = None


class CountRange(FrozenModel):
    """Nombre d'exemplaires, ex. +2mar ou 2~10dmin"""
    low: int = 1
    high: int = 1


class Marker(FrozenModel):
    type: MarkerType
    index: Optional[int] = None
    count: CountRange = Field(default_factory=CountRange)


class Alternatives(FrozenModel, Generic[T]):
    """Lectures possibles d'une notation ambiguë, sans choix imposé"""
    candidates: Tuple[T, ...] = Field(min_length=2)


class DetailedSegment(FrozenModel):
    """Segment de formule détaillée, ex. 13pter->13q10"""
    start: Optional[Breakpoint] = None
    end: Optional[Breakpoint] = None
    hsr: bool = False


class Aberration(FrozenModel):
    type: AberrationType
    uncertain_of: Optional[AberrationType] = None
    chromosomes: Tuple[ChromosomeRef, ...] = ()
    breakpoints: Tuple[Union[Breakpoint, Alternatives[Breakpoint]], ...] = ()
    chromosomes_well_formed: bool = True
    breakpoints_well_formed: bool = True
    rearrangements: Tuple[Union["Aberration", "Alternatives[Aberration]"], ...] = ()
    segments: Tuple[DetailedSegment, ...] = ()
    circular: bool = False


class Event(FrozenModel):
    kind: EventKind
    chromosome: Optional[ChromosomeRef] = None
    aberration: Optional[Aberration] = None
    marker: Optional[Marker] = None
    raw_text: Optional[str] = None
    alternatives: Optional["Alternatives[Event]"] = None
    copy_change: Optional[str] = None
    multiplicity: int = 1
    inheritance: Optional[Inheritance] = None
    constitutional: bool = False
    reference: Optional[ReferenceKind] = None
    reference_index: Optional[int] = None
    span: Optional[SourceSpan] = None


class Clone(FrozenModel):
    index: int
    group: int = 0
    kind: CloneKind
    modal_number: ModalNumber
    sex: Optional[SexDesignation] = None
    events: Tuple[Event, ...] = ()
    inherits_from: Optional[int] = None
    multiplicity: int = 1
    cell_count: Optional[int] = None
    composite: bool = False


class KaryotypeRecord(FrozenModel):
    """Caryotype ISCN analysé (un enregistrement par ligne d'entrée)"""

    source: str
    modal_number: ModalNumber
    sex: Optional[SexDesignation] = None
    clones: Tuple[Clone, ...] = Field(min_length=1)
    cell_count: Optional[int] = None
    diagnostics: Tuple[Diagnostic, ...] = ()
    composition_kind: CompositionKind = CompositionKind.SINGLE

    @property
    def is_normal(self) -> bool:
        """46,XX ou 46,XY sans aucun événement ni diagnostic"""
        return (
            not self.diagnostics
            and all(
                not clone.events
                and clone.modal_number.exact
                and clone.modal_number.low == 46
                and clone.sex is not None
                and clone.sex.kind in (SexKind.XX, SexKind.XY)
                for clone in self.clones
            )
        )

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)

    def expand_clone(self, index: int) -> Tuple[Event, ...]:
        """
        Matérialise les événements hérités d'un clone (idem/sl/sdl).

        Les événements du clone référencé viennent d'abord, suivis des
        événements propres; le renvoi lui-même est retiré.
        """
        clone = self.clones[index]
        inherited: Tuple[Event, ...] = ()
        if clone.inherits_from is not None:
            inherited = self.expand_clone(clone.inherits_from)
        own = tuple(e for e in clone.events if e.kind != EventKind.IDEM)
        return inherited + own

    def to_dict(self) -> Dict[str, Any]:
        """Convertit en dictionnaire JSON-compatible"""
        data = self.model_dump(mode="json")
        data["is_normal"] = self.is_normal
        return data


Aberration.model_rebuild()
Event.model_rebuild()
