from typing import Dict, List, Optional, Tuple

from iscn_karyotype.grammar import Alt, ParseNode

from .model import Diagnostic, SourceSpan
from .types import DiagnosticKind


# Alternative "incorrecte" de la grammaire -> catégorie de diagnostic
INCORRECT_ALTERNATIVES: Dict[Alt, DiagnosticKind] = {
    Alt.TOO_MANY_SLANT: DiagnosticKind.TOO_MANY_SLANTS,
    Alt.TOO_MANY_COMMA: DiagnosticKind.TOO_MANY_COMMAS,
    Alt.INCORRECT_LEFT_PARENTHESIS: DiagnosticKind.MISMATCHED_LEFT_PAREN,
    Alt.INCORRECT_RIGHT_PARENTHESIS: DiagnosticKind.MISMATCHED_RIGHT_PAREN,
    Alt.INCORRECT_CHR_LIST: DiagnosticKind.INCORRECT_CHR_LIST,
    Alt.INCORRECT_BREAKPOINTS_LIST: DiagnosticKind.INCORRECT_BREAKPOINTS_LIST,
    Alt.INCORRECT_DER_CHR_LIST: DiagnosticKind.INCORRECT_DER_CHR_LIST,
    Alt.INCORRECT_DER_BREAKPOINTS_LIST: DiagnosticKind.INCORRECT_DER_BREAKPOINTS_LIST,
    Alt.INCORRECT_CELL_NUM: DiagnosticKind.INCORRECT_CELL_NUM,
    Alt.INCORRECT_MODAL_NUM: DiagnosticKind.INCORRECT_MODAL_NUM,
    Alt.UNDECODED_EVENT: DiagnosticKind.UNDECODED_EVENT,
    Alt.UNDECODED_SPECIAL_EVENT: DiagnosticKind.UNDECODED_SPECIAL_EVENT,
}

MESSAGES: Dict[DiagnosticKind, str] = {
    DiagnosticKind.TOO_MANY_SLANTS: "too many slants between clones",
    DiagnosticKind.TOO_MANY_COMMAS: "too many commas between events",
    DiagnosticKind.MISMATCHED_LEFT_PAREN: "opening parenthesis is never closed",
    DiagnosticKind.MISMATCHED_RIGHT_PAREN: "closing parenthesis without opening one",
    DiagnosticKind.INCORRECT_CHR_LIST: "malformed chromosome list",
    DiagnosticKind.INCORRECT_BREAKPOINTS_LIST: "malformed breakpoint list",
    DiagnosticKind.INCORRECT_DER_CHR_LIST: "malformed derivative chromosome list",
    DiagnosticKind.INCORRECT_DER_BREAKPOINTS_LIST: "malformed derivative breakpoint list",
    DiagnosticKind.INCORRECT_CELL_NUM: "malformed cell count",
    DiagnosticKind.INCORRECT_MODAL_NUM: "malformed modal number",
    DiagnosticKind.UNDECODED_EVENT: "event could not be decoded",
    DiagnosticKind.UNDECODED_SPECIAL_EVENT: "idem/sl/sdl followed by undecodable text",
    DiagnosticKind.UNRESOLVED_INHERITANCE: "clone reference does not point to an earlier clone",
}


def classify(node: ParseNode) -> Optional[DiagnosticKind]:
    """Catégorie du diagnostic si le noeud est une alternative incorrecte"""
    return INCORRECT_ALTERNATIVES.get(node.alt)


def make_diagnostic(
    kind: DiagnosticKind, node: ParseNode, message: Optional[str] = None
) -> Diagnostic:
    return Diagnostic(
        kind=kind,
        span=SourceSpan(start=node.start, end=node.end),
        raw_text=node.text,
        message=message or MESSAGES[kind],
    )


def diagnose(node: Optional[ParseNode]) -> Optional[Diagnostic]:
    """Diagnostic pour une alternative incorrecte, None sinon. Ne lève jamais."""
    if node is None:
        return None
    kind = classify(node)
    if kind is None:
        return None
    return make_diagnostic(kind, node)


class DiagnosticSink:
    """
    Collecteur de diagnostics d'une construction.

    Ajout seulement; `freeze` renvoie le tuple définitif, trié de gauche à
    droite, et tout ajout ultérieur est refusé.
    """

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []
        self._frozen = False

    def add(self, diagnostic: Optional[Diagnostic]) -> None:
        if diagnostic is None:
            return
        if self._frozen:
            raise RuntimeError("diagnostic sink is frozen")
        self._diagnostics.append(diagnostic)

    def add_from(self, node: ParseNode) -> None:
        self.add(diagnose(node))

    def freeze(self) -> Tuple[Diagnostic, ...]:
        self._frozen = True
        return tuple(sorted(self._diagnostics, key=lambda d: d.span.start))

    def __len__(self) -> int:
        return len(self._diagnostics)
