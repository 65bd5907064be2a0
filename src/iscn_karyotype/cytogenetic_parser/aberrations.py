import logging
from typing import List, Optional, Sequence, Tuple, Union

from iscn_karyotype.grammar import Alt, ParseNode, Rule

from .diagnostics import DiagnosticSink, diagnose, make_diagnostic
from .model import (
    Aberration,
    Alternatives,
    Breakpoint,
    ChromosomeRef,
    DetailedSegment,
    Diagnostic,
)
from .numeric import to_int
from .types import ABBREVIATION_TYPES, AberrationType, DiagnosticKind

BreakpointEntry = Union[Breakpoint, Alternatives[Breakpoint]]
RearrangementEntry = Union[Aberration, Alternatives[Aberration]]

_CHR_LISTS = (Rule.CHR_LIST, Rule.DER_CHR_LIST)
_BREAKPOINT_LISTS = (Rule.BREAKPOINTS_LIST, Rule.DER_BREAKPOINTS)
_DETAILED = (Alt.DETAILED_BREAKPOINTS_LIST, Alt.DETAILED_DER_BREAKPOINTS)


# ==================== Chromosomes ====================

def build_chromosome(node: ParseNode) -> ChromosomeRef:
    if node.alt == Alt.ID_UNCERTAIN_CHR:
        return ChromosomeRef(name="?", uncertain=True)
    groups = node.groups
    return ChromosomeRef(
        name=groups["chr"],
        uncertain=bool(groups.get("leading") or groups.get("trailing")),
        arm=groups.get("arm"),
    )


def build_chr_list(node: ParseNode) -> Tuple[Tuple[ChromosomeRef, ...], Optional[Diagnostic]]:
    return tuple(build_chromosome(c) for c in node.children), diagnose(node)


# ==================== Points de cassure ====================

def build_breakpoint(node: ParseNode, chromosome: Optional[str] = None) -> Breakpoint:
    groups = node.groups
    return Breakpoint(
        arm=groups.get("arm"),
        band=to_int(groups.get("band")),
        subband=to_int(groups.get("subband")),
        uncertain=bool(groups.get("uncertain")) or node.alt == Alt.UNKNOWN,
        terminal=node.alt == Alt.TERMINAL,
        centromere=node.alt == Alt.CENTROMERE,
        upper_arm=groups.get("upper_arm"),
        upper_band=to_int(groups.get("upper_band")),
        upper_subband=to_int(groups.get("upper_subband")),
        chromosome=groups.get("chr", chromosome),
    )


def build_breakpoint_item(node: ParseNode, chromosome: Optional[str] = None) -> BreakpointEntry:
    """Un point de cassure, ou ses lectures possibles (p13orq13)"""
    candidates = tuple(build_breakpoint(c, chromosome) for c in node.children)
    if len(candidates) == 1:
        return candidates[0]
    return Alternatives[Breakpoint](candidates=candidates)


def build_segment(node: ParseNode, chromosome: Optional[str] = None) -> DetailedSegment:
    if node.alt == Alt.HSR_SEGMENT:
        return DetailedSegment(hsr=True)
    start = build_breakpoint(node.children[0], chromosome)
    end = build_breakpoint(node.children[1], chromosome) if len(node.children) > 1 else None
    return DetailedSegment(start=start, end=end)


def build_breakpoints_list(
    node: ParseNode, chromosomes: Sequence[ChromosomeRef]
) -> Tuple[Tuple[BreakpointEntry, ...], Tuple[DetailedSegment, ...], bool, Optional[Diagnostic]]:
    """
    Liste de points de cassure appariée à la liste de chromosomes.

    Le groupe i appartient au chromosome i. Une formule détaillée donne des
    segments, et leurs extrémités sont aplaties dans les points de cassure.

    Returns:
        (points de cassure, segments, anneau fermé, diagnostic éventuel)
    """
    if node.alt in _DETAILED:
        formula = node.children[0]
        owner = chromosomes[0].name if chromosomes else None
        segments = tuple(build_segment(s, owner) for s in formula.children)
        breakpoints: List[BreakpointEntry] = []
        for segment in segments:
            breakpoints += [b for b in (segment.start, segment.end) if b is not None]
        return tuple(breakpoints), segments, "circular" in formula.groups, None

    breakpoints = []
    for i, group in enumerate(node.children):
        owner = chromosomes[i].name if i < len(chromosomes) else None
        for item in group.children:
            breakpoints.append(build_breakpoint_item(item, owner))
    return tuple(breakpoints), (), False, diagnose(node)


# ==================== Anomalies ====================

class AberrationResolver:
    """
    Construit les anomalies structurelles (t, inv, del, dup, der, r, ...).

    Les diagnostics des listes mal formées vont dans le collecteur fourni;
    la construction aboutit toujours.
    """

    def __init__(self, sink: DiagnosticSink):
        self.sink = sink
        self.logger = logging.getLogger(__name__)

    def resolve(self, node: ParseNode) -> Aberration:
        abbrev = node.groups["abbrev"]
        aberration_type = ABBREVIATION_TYPES[abbrev]
        derivative = aberration_type == AberrationType.DERIVATIVE
        uncertain_of = None
        if node.alt == Alt.UNCERTAIN_BASIC_ABERRATION:
            uncertain_of = aberration_type
            aberration_type = AberrationType.UNCERTAIN_BASIC

        # parenthèses mal appariées
        self.sink.add(diagnose(node))

        chr_node = next(c for c in node.children if c.rule in _CHR_LISTS)
        chromosomes, diagnostic = build_chr_list(chr_node)
        self.sink.add(diagnostic)
        chromosomes_well_formed = diagnostic is None

        breakpoints: Tuple[BreakpointEntry, ...] = ()
        segments: Tuple[DetailedSegment, ...] = ()
        circular = False
        breakpoints_well_formed = True
        bp_node = next((c for c in node.children if c.rule in _BREAKPOINT_LISTS), None)
        if bp_node is not None:
            breakpoints, segments, circular, diagnostic = build_breakpoints_list(
                bp_node, chromosomes
            )
            # appariement jugé seulement contre une liste de chromosomes valide
            if diagnostic is None and chromosomes_well_formed:
                diagnostic = self._cardinality(bp_node, chromosomes, derivative)
            self.sink.add(diagnostic)
            breakpoints_well_formed = diagnostic is None

        rearrangements = tuple(
            self._rearrangement(r) for r in node.children_of(Rule.REARRANGEMENT)
        )
        self.logger.debug(f"{aberration_type} built from {node.text!r}")
        return Aberration(
            type=aberration_type,
            uncertain_of=uncertain_of,
            chromosomes=chromosomes,
            breakpoints=breakpoints,
            chromosomes_well_formed=chromosomes_well_formed,
            breakpoints_well_formed=breakpoints_well_formed,
            rearrangements=rearrangements,
            segments=segments,
            circular=circular,
        )

    def _cardinality(
        self, bp_node: ParseNode, chromosomes: Sequence[ChromosomeRef], derivative: bool
    ) -> Optional[Diagnostic]:
        """Un groupe de points de cassure par chromosome, sinon diagnostic"""
        if bp_node.alt in _DETAILED or len(bp_node.children) == len(chromosomes):
            return None
        kind = (
            DiagnosticKind.INCORRECT_DER_BREAKPOINTS_LIST
            if derivative
            else DiagnosticKind.INCORRECT_BREAKPOINTS_LIST
        )
        return make_diagnostic(
            kind,
            bp_node,
            f"{len(bp_node.children)} breakpoint group(s) for {len(chromosomes)} chromosome(s)",
        )

    def _rearrangement(self, node: ParseNode) -> RearrangementEntry:
        candidates = tuple(self.resolve(c) for c in node.children)
        if len(candidates) == 1:
            return candidates[0]
        return Alternatives[Aberration](candidates=candidates)
