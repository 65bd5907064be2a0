import logging
from typing import List, Optional

from iscn_karyotype.grammar import Alt, ParseNode, Rule

from .aberrations import AberrationResolver, build_chromosome
from .diagnostics import DiagnosticSink, diagnose
from .model import (
    Alternatives,
    Clone,
    Diagnostic,
    Event,
    KaryotypeRecord,
    ModalNumber,
    SexDesignation,
    SourceSpan,
)
from .numeric import resolve_cell_count, resolve_marker, resolve_modal_number, resolve_multiplication
from .types import (
    INHERITANCE_SUFFIXES,
    CloneKind,
    CompositionKind,
    DiagnosticKind,
    EventKind,
    ReferenceKind,
    SexKind,
)

_REFERENCES = {
    Alt.IDEM_SPECIAL: ReferenceKind.IDEM,
    Alt.IDEM_EVENT: ReferenceKind.IDEM,
    Alt.SL_SPECIAL: ReferenceKind.SL,
    Alt.SL_EVENT: ReferenceKind.SL,
    Alt.SDL_SPECIAL: ReferenceKind.SDL,
    Alt.SDL_EVENT: ReferenceKind.SDL,
}

_SIDELINES = (CloneKind.SIDELINE_I, CloneKind.SIDELINE_II)


def _span(node: ParseNode) -> SourceSpan:
    return SourceSpan(start=node.start, end=node.end)


class KaryotypeVisitor:
    """
    Parcourt l'arbre syntaxique et assemble le KaryotypeRecord.

    Une instance par enregistrement: la liste des clones déjà construits et
    le collecteur de diagnostics ne sont jamais partagés entre deux lignes.
    Les renvois idem/sl/sdl deviennent un index vers un clone antérieur,
    jamais une copie de ses événements.
    """

    def __init__(self, source: str):
        self.source = source
        self.logger = logging.getLogger(__name__)
        self.sink = DiagnosticSink()
        self.aberrations = AberrationResolver(self.sink)
        self.clones: List[Clone] = []

    def visit(self, tree: ParseNode) -> KaryotypeRecord:
        composition = CompositionKind.SINGLE
        group_index = 0
        for child in tree.children:
            if child.rule == Rule.MOS_CHI:
                composition = (
                    CompositionKind.MOSAIC if child.alt == Alt.MOSAIC else CompositionKind.CHIMERIC
                )
            elif child.rule == Rule.GROUP_SEPARATOR:
                self.sink.add(diagnose(child))
            elif child.rule == Rule.GROUP:
                self._visit_group(child, group_index)
                group_index += 1

        self.logger.debug(f"{len(self.clones)} clone(s) built for {self.source!r}")
        first = self.clones[0]
        return KaryotypeRecord(
            source=self.source,
            modal_number=first.modal_number,
            sex=first.sex,
            clones=tuple(self.clones),
            cell_count=self._total_cell_count(),
            diagnostics=self.sink.freeze(),
            composition_kind=composition,
        )

    def _total_cell_count(self) -> Optional[int]:
        if len(self.clones) == 1:
            return self.clones[0].cell_count
        counts = [c.cell_count for c in self.clones if c.cell_count is not None]
        return sum(counts) if counts else None

    # ==================== Clones ====================

    def _visit_group(self, node: ParseNode, group: int) -> None:
        group_clones: List[Clone] = []
        for clone_node in node.children:
            clone = self._visit_clone(clone_node, group, group_clones)
            group_clones.append(clone)
            self.clones.append(clone)

    def _visit_clone(self, node: ParseNode, group: int, group_clones: List[Clone]) -> Clone:
        modal: Optional[ModalNumber] = None
        sex: Optional[SexDesignation] = None
        events: List[Event] = []
        cell_count: Optional[int] = None
        composite = False
        head: Optional[Event] = None

        for child in node.children:
            if child.rule == Rule.MODAL_NUM:
                modal, diagnostic = resolve_modal_number(child)
                self.sink.add(diagnostic)
            elif child.rule == Rule.EVENT_SEPARATOR:
                self.sink.add(diagnose(child))
            elif child.rule == Rule.SEX:
                sex = self._visit_sex(child)
            elif child.rule == Rule.HEAD:
                head = self._visit_event(child)
                events.append(head)
            elif child.rule == Rule.EVENT:
                events.append(self._visit_event(child))
            elif child.rule == Rule.CELL_NUM:
                cell_count, composite, diagnostic = resolve_cell_count(child)
                self.sink.add(diagnostic)

        inherits_from = None
        multiplicity = 1
        references = [e for e in events if e.kind == EventKind.IDEM]
        if references:
            reference = references[0]
            inherits_from = self._resolve_reference(reference, group_clones)
            if reference is head:
                multiplicity = reference.multiplicity
        # un clone n'hérite que d'un seul clone
        for extra in references[1:]:
            self.sink.add(
                Diagnostic(
                    kind=DiagnosticKind.UNRESOLVED_INHERITANCE,
                    span=extra.span,
                    raw_text=extra.raw_text,
                    message=f"{extra.raw_text} ignored: clone already refers to {references[0].raw_text}",
                )
            )

        if not group_clones:
            kind = CloneKind.STEMLINE
        elif inherits_from is not None:
            target = self.clones[inherits_from]
            kind = CloneKind.SIDELINE_I if target.kind == CloneKind.STEMLINE else CloneKind.SIDELINE_II
        elif cell_count == 1:
            kind = CloneKind.NONCLONAL
        else:
            kind = CloneKind.ADDITIONAL

        return Clone(
            index=len(self.clones),
            group=group,
            kind=kind,
            modal_number=modal,
            sex=sex,
            events=tuple(events),
            inherits_from=inherits_from,
            multiplicity=multiplicity,
            cell_count=cell_count,
            composite=composite,
        )

    def _resolve_reference(self, reference: Event, group_clones: List[Clone]) -> Optional[int]:
        """
        idem -> clone précédent du groupe ; sl -> stemline du groupe ;
        sdl -> dernière sideline, sdlN -> N-ième sideline.

        Renvoie l'index global, ou None avec un diagnostic si rien ne correspond.
        """
        target: Optional[Clone] = None
        if group_clones:
            if reference.reference == ReferenceKind.IDEM:
                target = group_clones[-1]
            elif reference.reference == ReferenceKind.SL:
                target = group_clones[0]
            else:
                sidelines = [c for c in group_clones if c.kind in _SIDELINES]
                n = reference.reference_index
                if n is None and sidelines:
                    target = sidelines[-1]
                elif n is not None and 1 <= n <= len(sidelines):
                    target = sidelines[n - 1]

        if target is None:
            self.sink.add(
                Diagnostic(
                    kind=DiagnosticKind.UNRESOLVED_INHERITANCE,
                    span=reference.span,
                    raw_text=reference.raw_text,
                    message=f"{reference.raw_text} does not point to an earlier clone",
                )
            )
            return None
        return target.index

    def _visit_sex(self, node: ParseNode) -> SexDesignation:
        if node.alt == Alt.UNDETERMINED_SEX:
            return SexDesignation(kind=SexKind.UNDETERMINED, uncertain=True)
        chromosomes = node.groups["sex"]
        if chromosomes == "XX":
            kind = SexKind.XX
        elif chromosomes == "XY":
            kind = SexKind.XY
        else:
            kind = SexKind.MIXED
        return SexDesignation(
            kind=kind, chromosomes=tuple(chromosomes), uncertain="uncertain" in node.groups
        )

    # ==================== Événements ====================

    def _visit_event(self, node: ParseNode) -> Event:
        if node.alt in _REFERENCES:
            return Event(
                kind=EventKind.IDEM,
                reference=_REFERENCES[node.alt],
                reference_index=int(node.groups["index"]) if "index" in node.groups else None,
                multiplicity=resolve_multiplication(node.child(Rule.MULTIPLICATION)),
                raw_text=node.text,
                span=_span(node),
            )
        if node.alt == Alt.MULTIPLE_INTERPRETATION_EVENT:
            candidates = tuple(self._visit_simple_event(c) for c in node.children)
            return Event(
                kind=EventKind.ALTERNATIVES,
                alternatives=Alternatives[Event](candidates=candidates),
                raw_text=node.text,
                span=_span(node),
            )
        if node.alt == Alt.SIMPLE_REGULAR_EVENT:
            return self._visit_simple_event(node.children[0])
        if node.alt == Alt.MOSAIC_TAG_EVENT:
            return Event(kind=EventKind.MOSAIC_TAG, raw_text=node.text, span=_span(node))

        # UndecodedEvent / UndecodedSpecialEvent
        self.sink.add(diagnose(node))
        return Event(kind=EventKind.UNDECODED, raw_text=node.text, span=_span(node))

    def _visit_simple_event(self, node: ParseNode) -> Event:
        prefix = node.child(Rule.PREFIX)
        sign = None
        if prefix is not None:
            sign = "+" if prefix.alt == Alt.PREFIX_PLUS else "-"

        inheritance = None
        constitutional = False
        for suffix in node.children_of(Rule.SUFFIX):
            if suffix.alt == Alt.CONSTITUTIONAL:
                constitutional = True
            else:
                inheritance = INHERITANCE_SUFFIXES[suffix.groups["suffix"]]

        common = dict(
            multiplicity=resolve_multiplication(node.child(Rule.MULTIPLICATION)),
            inheritance=inheritance,
            constitutional=constitutional,
            raw_text=node.text,
            span=_span(node),
        )

        core = next(
            c for c in node.children if c.rule in (Rule.ABERRATION, Rule.CHROMOSOME, Rule.MARKER)
        )
        if core.rule == Rule.CHROMOSOME:
            kind = EventKind.GAIN_CHROMOSOME if sign == "+" else EventKind.LOSS_CHROMOSOME
            return Event(kind=kind, chromosome=build_chromosome(core), **common)
        if core.rule == Rule.ABERRATION:
            return Event(
                kind=EventKind.ABERRATION,
                aberration=self.aberrations.resolve(core),
                copy_change=sign,
                **common,
            )
        return Event(kind=EventKind.MARKER, marker=resolve_marker(core), copy_change=sign, **common)


def build_record(tree: ParseNode, source: str) -> KaryotypeRecord:
    return KaryotypeVisitor(source).visit(tree)
