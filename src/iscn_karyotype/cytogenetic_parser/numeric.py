"""Résolution des valeurs numériques: nombre modal, nombre de cellules, comptes."""
from typing import Optional, Tuple

from iscn_karyotype.grammar import Alt, ParseNode, Rule

from .diagnostics import diagnose
from .model import CountRange, Diagnostic, Marker, ModalNumber
from .types import MarkerType


def to_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value is not None else None


def resolve_modal_number(node: ParseNode) -> Tuple[ModalNumber, Optional[Diagnostic]]:
    """
    Nombre modal sous ses différentes formes.

    - 46        -> exact
    - 45-47     -> plage, low/high
    - 45~47     -> plage approximative
    - ~46       -> approximatif, low == high
    - 45,46     -> énumération (incorrecte): low=min, high=max + diagnostic
    """
    content = node.child(Rule.MODAL_CONTENT)
    groups = content.groups
    level_node = node.child(Rule.MODAL_LEVEL)
    ploidy_level = level_node.text if level_node is not None else None

    if content.alt == Alt.EXACT:
        value = int(groups["low"])
        modal = ModalNumber(low=value, high=value, ploidy_level=ploidy_level)
    elif content.alt == Alt.NUM_RANGE_HYPHEN:
        low, high = sorted((int(groups["low"]), int(groups["high"])))
        modal = ModalNumber(
            low=low,
            high=high,
            exact=False,
            ploidy_level=ploidy_level,
        )
    elif content.alt == Alt.NUM_RANGE_TILDE:
        low, high = sorted((int(groups["low"]), int(groups["high"])))
        modal = ModalNumber(
            low=low,
            high=high,
            exact=False,
            approximate=True,
            ploidy_level=ploidy_level,
        )
    elif content.alt == Alt.APPROXIMATE:
        value = int(groups["low"])
        modal = ModalNumber(
            low=value, high=value, exact=False, approximate=True, ploidy_level=ploidy_level
        )
    else:
        values = [int(v) for v in groups["values"].split(",")]
        modal = ModalNumber(low=min(values), high=max(values), exact=False)

    return modal, diagnose(node)


def resolve_cell_count(node: ParseNode) -> Tuple[Optional[int], bool, Optional[Diagnostic]]:
    """[20] -> 20 ; [cp10] -> (10, composite) ; [2O] -> None + diagnostic"""
    composite = "composite" in node.groups
    if node.alt == Alt.CORRECT_CELL_NUM:
        return int(node.groups["count"]), composite, None
    body = node.groups.get("body", "")
    count = int(body) if body.isdigit() else None
    return count, composite, diagnose(node)


def resolve_multiplication(node: Optional[ParseNode]) -> int:
    """x2 -> 2 ; absent -> 1"""
    if node is None:
        return 1
    return int(node.groups["times"])


def resolve_count_range(node: ParseNode) -> CountRange:
    low = to_int(node.groups.get("low"))
    high = to_int(node.groups.get("high"))
    if low is None:
        return CountRange()
    return CountRange(low=low, high=high if high is not None else low)


def resolve_marker(node: ParseNode) -> Marker:
    if node.alt == Alt.MAR:
        return Marker(
            type=MarkerType.MAR,
            index=to_int(node.groups.get("index")),
            count=resolve_count_range(node),
        )
    if node.alt == Alt.DMIN:
        return Marker(type=MarkerType.DMIN, count=resolve_count_range(node))
    return Marker(type=MarkerType.UNKNOWN)

