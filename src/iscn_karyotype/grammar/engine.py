import logging
import re
from functools import partial
from typing import Callable, Dict, List, Optional

from iscn_karyotype.globals import MAX_INPUT_LENGTH, MAX_PARSE_STEPS

from .errors import FatalSyntaxError, ParseBudgetExceeded
from .patterns import KaryotypePatterns as P
from .tree import Alt, ParseNode, Rule

logger = logging.getLogger(__name__)

_COMPILED: Dict[P, re.Pattern] = {p: re.compile(p.value) for p in P}

_LAX_CHR_PIECE = re.compile(r"[^;,:.]+")
_LAX_GROUP_PIECE = re.compile(r"[^;,:]+")

Alternative = Callable[[], Optional[ParseNode]]


class _ParseRun:
    """
    État d'une seule analyse (position, compteur de pas, échec le plus lointain).

    Chaque méthode de règle renvoie un ParseNode ou None. Une alternative qui
    échoue ne consomme rien: `_first` restaure la position avant d'essayer la
    suivante (choix ordonné, la variante stricte avant la variante tolérante).
    """

    def __init__(self, text: str, max_steps: int):
        self.text = text
        self.pos = 0
        self.steps = 0
        self.max_steps = max_steps
        self.furthest = 0

    # ==================== Primitives ====================

    def _tick(self) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise ParseBudgetExceeded(
                f"parse exceeded {self.max_steps} steps", self.furthest, self.text
            )

    def _match(self, pattern: P) -> Optional[re.Match]:
        self._tick()
        m = _COMPILED[pattern].match(self.text, self.pos)
        if m is None:
            self.furthest = max(self.furthest, self.pos)
            return None
        self.pos = m.end()
        self.furthest = max(self.furthest, self.pos)
        return m

    def _ahead(self, pattern: P) -> bool:
        self._tick()
        return _COMPILED[pattern].match(self.text, self.pos) is not None

    @property
    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _leaf(self, rule: Rule, alt: Alt, m: re.Match) -> ParseNode:
        groups = {k: v for k, v in m.groupdict().items() if v is not None}
        return ParseNode(rule, alt, m.start(), m.end(), m.group(0), groups=groups)

    def _node(
        self,
        rule: Rule,
        alt: Alt,
        start: int,
        children: List[ParseNode],
        groups: Optional[Dict[str, str]] = None,
    ) -> ParseNode:
        return ParseNode(
            rule, alt, start, self.pos, self.text[start:self.pos], children, groups or {}
        )

    def _attempt(self, alternative: Alternative) -> Optional[ParseNode]:
        start = self.pos
        node = alternative()
        if node is None:
            self.pos = start
        return node

    def _first(self, *alternatives: Alternative) -> Optional[ParseNode]:
        for alternative in alternatives:
            node = self._attempt(alternative)
            if node is not None:
                return node
        return None

    def _parenthesized(self, alternative: Alternative) -> Optional[ParseNode]:
        if self._match(P.LEFT_PAREN) is None:
            return None
        node = self._attempt(alternative)
        if node is None or self._match(P.RIGHT_PAREN) is None:
            return None
        return node

    def _closed(self, alternative: Alternative) -> Optional[ParseNode]:
        """Liste suivie de sa parenthèse fermante"""
        node = self._attempt(alternative)
        if node is None or not self._ahead(P.RIGHT_PAREN):
            return None
        return node

    def _unclosed(self, alternative: Alternative) -> Optional[ParseNode]:
        """Liste suivie directement d'un délimiteur (parenthèse jamais fermée)"""
        node = self._attempt(alternative)
        if node is None or not self._ahead(P.DELIMITER_AHEAD):
            return None
        return node

    def _fail(self, message: str, position: Optional[int] = None) -> None:
        position = self.furthest if position is None else position
        raise FatalSyntaxError(message, position, self.text)

    # ==================== Ligne, groupes, clones ====================

    def row(self) -> ParseNode:
        children = []
        m = self._match(P.MOS_CHI)
        if m is not None:
            alt = Alt.MOSAIC if m.group("kind") == "mos" else Alt.CHIMERIC
            children.append(self._leaf(Rule.MOS_CHI, alt, m))

        group = self._group()
        if group is None:
            self._fail("expected a clone")
        children.append(group)

        n_groups = 1
        while not self._at_end:
            separator = self._group_separator()
            if separator is None:
                break
            group = self._group()
            if group is None:
                self._fail("expected a clone after group separator")
            children += [separator, group]
            n_groups += 1

        if not self._at_end:
            self._fail("unexpected input", max(self.pos, self.furthest))

        alt = Alt.ROW_TYPE_I if n_groups == 1 else Alt.ROW_TYPE_II
        return self._node(Rule.ROW, alt, 0, children)

    def _group_separator(self) -> Optional[ParseNode]:
        m = self._match(P.GROUP_SEPARATOR)
        if m is not None:
            return self._leaf(Rule.GROUP_SEPARATOR, Alt.CORRECT_SLANT, m)
        m = self._match(P.TOO_MANY_SLANTS)
        if m is not None:
            return self._leaf(Rule.GROUP_SEPARATOR, Alt.TOO_MANY_SLANT, m)
        return None

    def _group(self) -> Optional[ParseNode]:
        start = self.pos
        clone = self._clone()
        if clone is None:
            return None
        clones = [clone]
        while True:
            mark = self.pos
            if self._match(P.CLONE_SEPARATOR) is None:
                break
            clone = self._clone()
            if clone is None:
                self.pos = mark
                break
            clones.append(clone)
        return self._node(Rule.GROUP, Alt.STEMLINE_GROUP, start, clones)

    def _clone(self) -> Optional[ParseNode]:
        return self._first(self._karyotype_clone, self._glued_clone)

    def _karyotype_clone(self) -> Optional[ParseNode]:
        start = self.pos
        modal = self._modal_num()
        if modal is None:
            return None
        separator = self._event_separator()
        if separator is None:
            return None
        children = [modal]
        if separator.alt == Alt.TOO_MANY_COMMA:
            children.append(separator)

        head = self._first(self._sex, lambda: self._reference(head=True))
        if head is None:
            head = self._event()
        if head is None:
            return None
        children.append(head)
        return self._clone_tail(Alt.KARYOTYPE, start, children)

    def _glued_clone(self) -> Optional[ParseNode]:
        """Nombre modal collé au sexe, ex. 46XX"""
        start = self.pos
        m = self._match(P.MODAL_EXACT)
        if m is None:
            return None
        sex = self._sex()
        if sex is None:
            return None
        content = self._leaf(Rule.MODAL_CONTENT, Alt.EXACT, m)
        modal = ParseNode(
            Rule.MODAL_NUM, Alt.INCORRECT_MODAL_NUM, m.start(), m.end(), m.group(0), [content]
        )
        return self._clone_tail(Alt.MODAL_SEX_GLUED, start, [modal, sex])

    def _clone_tail(self, alt: Alt, start: int, children: List[ParseNode]) -> Optional[ParseNode]:
        while True:
            mark = self.pos
            separator = self._event_separator()
            if separator is None:
                break
            if self._ahead(P.CLONE_END_AHEAD):
                # virgule finale: une virgule de trop
                children.append(
                    ParseNode(
                        Rule.EVENT_SEPARATOR,
                        Alt.TOO_MANY_COMMA,
                        separator.start,
                        separator.end,
                        separator.text,
                    )
                )
                break
            if separator.alt == Alt.TOO_MANY_COMMA:
                children.append(separator)
            event = self._event()
            if event is None:
                self.pos = mark
                break
            children.append(event)

        cell = self._cell_num()
        if cell is not None:
            children.append(cell)
        if not self._ahead(P.CLONE_END_AHEAD):
            return None
        return self._node(Rule.CLONE, alt, start, children)

    def _event_separator(self) -> Optional[ParseNode]:
        m = self._match(P.COMMA)
        if m is not None:
            return self._leaf(Rule.EVENT_SEPARATOR, Alt.CORRECT_COMMA, m)
        m = self._match(P.TOO_MANY_COMMAS)
        if m is not None:
            return self._leaf(Rule.EVENT_SEPARATOR, Alt.TOO_MANY_COMMA, m)
        return None

    # ==================== Nombre modal, sexe ====================

    def _modal_num(self) -> Optional[ParseNode]:
        return self._first(self._correct_modal_num, self._incorrect_modal_num)

    def _correct_modal_num(self) -> Optional[ParseNode]:
        start = self.pos
        m = self._match(P.MODAL_RANGE)
        if m is not None:
            alt = Alt.NUM_RANGE_HYPHEN if m.group("separator") == "-" else Alt.NUM_RANGE_TILDE
        else:
            m = self._match(P.MODAL_APPROXIMATE)
            alt = Alt.APPROXIMATE
            if m is None:
                m = self._match(P.MODAL_EXACT)
                alt = Alt.EXACT
        if m is None:
            return None

        children = [self._leaf(Rule.MODAL_CONTENT, alt, m)]
        level = self._match(P.MODAL_LEVEL)
        if level is not None:
            children.append(self._leaf(Rule.MODAL_LEVEL, Alt.MODAL_LEVEL, level))

        # 45,46,XX : la liste de valeurs relève de la variante incorrecte
        if self._ahead(P.ENUMERATION_AHEAD):
            return None
        return self._node(Rule.MODAL_NUM, Alt.CORRECT_MODAL_NUM, start, children)

    def _incorrect_modal_num(self) -> Optional[ParseNode]:
        start = self.pos
        m = self._match(P.MODAL_ENUMERATED)
        if m is None:
            return None
        content = self._leaf(Rule.MODAL_CONTENT, Alt.ENUMERATED, m)
        return self._node(Rule.MODAL_NUM, Alt.INCORRECT_MODAL_NUM, start, [content])

    def _sex(self) -> Optional[ParseNode]:
        m = self._match(P.SEX)
        if m is not None:
            return self._leaf(Rule.SEX, Alt.GENDER, m)
        m = self._match(P.UNDETERMINED_SEX)
        if m is not None:
            return self._leaf(Rule.SEX, Alt.UNDETERMINED_SEX, m)
        return None

    def _reference(self, head: bool) -> Optional[ParseNode]:
        """idem / sl / sdlN, en tête de clone ou comme événement"""
        start = self.pos
        references = (
            (P.IDEM, Alt.IDEM_SPECIAL, Alt.IDEM_EVENT),
            (P.SDL, Alt.SDL_SPECIAL, Alt.SDL_EVENT),
            (P.SL, Alt.SL_SPECIAL, Alt.SL_EVENT),
        )
        for pattern, head_alt, event_alt in references:
            m = self._match(pattern)
            if m is None:
                continue
            groups = {k: v for k, v in m.groupdict().items() if v is not None}
            children = []
            times = self._match(P.MULTIPLICATION)
            if times is not None:
                children.append(self._leaf(Rule.MULTIPLICATION, Alt.MULTIPLICATION, times))
            if not self._ahead(P.DELIMITER_AHEAD):
                self.pos = start
                continue
            if head:
                return self._node(Rule.HEAD, head_alt, start, children, groups)
            return self._node(Rule.EVENT, event_alt, start, children, groups)
        return None

    # ==================== Événements ====================

    def _event(self) -> Optional[ParseNode]:
        return self._first(
            self._multiple_interpretation_event,
            self._simple_regular_event,
            lambda: self._reference(head=False),
            self._mosaic_tag_event,
            self._undecoded_special_event,
            self._undecoded_event,
        )

    def _multiple_interpretation_event(self) -> Optional[ParseNode]:
        start = self.pos
        first = self._simple_event()
        if first is None:
            return None
        candidates = [first]
        while self._match(P.OR) is not None:
            candidate = self._simple_event()
            if candidate is None:
                return None
            candidates.append(candidate)
        if len(candidates) < 2 or not self._ahead(P.DELIMITER_AHEAD):
            return None
        return self._node(Rule.EVENT, Alt.MULTIPLE_INTERPRETATION_EVENT, start, candidates)

    def _simple_regular_event(self) -> Optional[ParseNode]:
        start = self.pos
        simple = self._simple_event()
        if simple is None or not self._ahead(P.DELIMITER_AHEAD):
            return None
        return self._node(Rule.EVENT, Alt.SIMPLE_REGULAR_EVENT, start, [simple])

    def _simple_event(self) -> Optional[ParseNode]:
        """Signe? noyau multiplication? suffixes* ; chaque noyau est essayé jusqu'au bout"""
        cores = (
            lambda signed: self._aberration_strict(),
            lambda signed: self._marker(),
            self._gain_loss_chr,
            lambda signed: self._aberration_lenient(),
        )
        return self._first(*(partial(self._simple_event_with, core) for core in cores))

    def _simple_event_with(self, core_rule: Callable[[bool], Optional[ParseNode]]) -> Optional[ParseNode]:
        start = self.pos
        children = []
        prefix = self._prefix()
        if prefix is not None:
            children.append(prefix)

        core = core_rule(prefix is not None)
        if core is None:
            return None
        children.append(core)

        times = self._match(P.MULTIPLICATION)
        if times is not None:
            children.append(self._leaf(Rule.MULTIPLICATION, Alt.MULTIPLICATION, times))
        while True:
            m = self._match(P.SUFFIX)
            if m is None:
                break
            alt = Alt.CONSTITUTIONAL if m.group("suffix") == "c" else Alt.INHERITANCE
            children.append(self._leaf(Rule.SUFFIX, alt, m))

        if not self._ahead(P.EVENT_END_AHEAD):
            return None

        if core.rule == Rule.ABERRATION:
            alt = Alt.ABERRATION_EVENT
        elif core.rule == Rule.CHROMOSOME:
            alt = Alt.GAIN_LOSS_CHR_EVENT
        elif core.alt == Alt.UNKNOWN:
            alt = Alt.UNCERTAIN_EVENT
        else:
            alt = Alt.MARKER_EVENT
        return self._node(Rule.SIMPLE_EVENT, alt, start, children)

    def _prefix(self) -> Optional[ParseNode]:
        m = self._match(P.PREFIX)
        if m is None:
            return None
        alt = Alt.PREFIX_PLUS if m.group("sign") == "+" else Alt.PREFIX_MINUS
        return self._leaf(Rule.PREFIX, alt, m)

    def _marker(self) -> Optional[ParseNode]:
        m = self._match(P.MARKER)
        if m is not None:
            return self._leaf(Rule.MARKER, Alt.MAR, m)
        m = self._match(P.DOUBLE_MINUTE)
        if m is not None:
            return self._leaf(Rule.MARKER, Alt.DMIN, m)
        m = self._match(P.UNCERTAIN_EVENT)
        if m is not None:
            return self._leaf(Rule.MARKER, Alt.UNKNOWN, m)
        return None

    def _gain_loss_chr(self, has_prefix: bool) -> Optional[ParseNode]:
        # un chromosome seul n'est un événement qu'avec un signe
        if not has_prefix:
            return None
        m = self._match(P.EVENT_CHROMOSOME)
        if m is None:
            return None
        return self._leaf(Rule.CHROMOSOME, Alt.GAIN_LOSS_CHR, m)

    def _mosaic_tag_event(self) -> Optional[ParseNode]:
        m = self._match(P.MOSAIC_TAG)
        if m is None:
            return None
        return self._leaf(Rule.EVENT, Alt.MOSAIC_TAG_EVENT, m)

    def _undecoded_special_event(self) -> Optional[ParseNode]:
        if not self._ahead(P.SPECIAL_PREFIX):
            return None
        return self._undecoded(Alt.UNDECODED_SPECIAL_EVENT)

    def _undecoded_event(self) -> Optional[ParseNode]:
        return self._undecoded(Alt.UNDECODED_EVENT)

    def _undecoded(self, alt: Alt) -> Optional[ParseNode]:
        """Consomme jusqu'au prochain délimiteur de niveau zéro"""
        self._tick()
        start = self.pos
        depth = 0
        i = start
        while i < len(self.text):
            ch = self.text[i]
            if ch in "/[":
                break
            if ch == "," and depth == 0:
                break
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth = max(0, depth - 1)
            i += 1
        if i == start:
            return None
        self.pos = i
        self.furthest = max(self.furthest, self.pos)
        return self._node(Rule.EVENT, alt, start, [])

    # ==================== Anomalies: variantes strictes ====================

    def _aberration_strict(self) -> Optional[ParseNode]:
        return self._first(
            self._der_aberration,
            self._uncertain_basic_aberration,
            self._basic_aberration,
        )

    def _basic_aberration(self) -> Optional[ParseNode]:
        start = self.pos
        m = self._match(P.ABBREVIATION)
        if m is None:
            return None
        chr_list = self._parenthesized(self._correct_chr_list)
        if chr_list is None:
            return None
        children = [chr_list]
        if self._ahead(P.LEFT_PAREN):
            breakpoints = self._parenthesized(
                lambda: self._correct_breakpoints_list(Rule.BREAKPOINTS_LIST)
            )
            if breakpoints is None or not _cardinality_ok(chr_list, breakpoints):
                return None
            children.append(breakpoints)
        return self._node(
            Rule.ABERRATION, Alt.BASIC_ABERRATION, start, children, {"abbrev": m.group("abbrev")}
        )

    def _uncertain_basic_aberration(self) -> Optional[ParseNode]:
        start = self.pos
        if self._match(P.UNCERTAIN_PREFIX) is None:
            return None
        inner = self._basic_aberration()
        if inner is None:
            return None
        return self._node(
            Rule.ABERRATION, Alt.UNCERTAIN_BASIC_ABERRATION, start, inner.children, inner.groups
        )

    def _der_aberration(self) -> Optional[ParseNode]:
        start = self.pos
        if self._match(P.DER) is None:
            return None
        chr_list = self._parenthesized(
            lambda: self._correct_chr_list(Rule.DER_CHR_LIST, Alt.CORRECT_DER_CHR_LIST)
        )
        if chr_list is None:
            return None
        children = [chr_list]
        if self._ahead(P.LEFT_PAREN):
            breakpoints = self._parenthesized(
                lambda: self._correct_breakpoints_list(Rule.DER_BREAKPOINTS)
            )
            if breakpoints is None or not _cardinality_ok(chr_list, breakpoints):
                return None
            children.append(breakpoints)
        else:
            children += self._rearrangements()
        return self._node(Rule.ABERRATION, Alt.DER_ABERRATION, start, children, {"abbrev": "der"})

    def _rearrangements(self) -> List[ParseNode]:
        rearrangements = []
        while True:
            rearrangement = self._attempt(self._rearrangement)
            if rearrangement is None:
                return rearrangements
            rearrangements.append(rearrangement)

    def _rearrangement(self) -> Optional[ParseNode]:
        start = self.pos
        first = self._attempt(self._basic_aberration)
        if first is None:
            return None
        candidates = [first]
        while True:
            mark = self.pos
            if self._match(P.OR) is None:
                break
            candidate = self._attempt(self._basic_aberration)
            if candidate is None:
                self.pos = mark
                break
            candidates.append(candidate)
        alt = (
            Alt.MULTIPLE_INTERPRETATION_REARRANGEMENT
            if len(candidates) > 1
            else Alt.NORMAL_REARRANGEMENT
        )
        return self._node(Rule.REARRANGEMENT, alt, start, candidates)

    def _correct_chr_list(
        self, rule: Rule = Rule.CHR_LIST, alt: Alt = Alt.CORRECT_CHR_LIST
    ) -> Optional[ParseNode]:
        start = self.pos
        items = []
        while True:
            item = self._list_chromosome()
            if item is None:
                return None
            items.append(item)
            if self._match(P.SEMICOLON) is None:
                break
        return self._node(rule, alt, start, items)

    def _list_chromosome(self) -> Optional[ParseNode]:
        m = self._match(P.LIST_CHROMOSOME)
        if m is not None:
            uncertain = m.group("leading") or m.group("trailing")
            return self._leaf(Rule.CHROMOSOME, Alt.UNCERTAIN_CHR if uncertain else Alt.CHR_NUM, m)
        m = self._match(P.ID_UNCERTAIN_CHROMOSOME)
        if m is not None:
            return self._leaf(Rule.CHROMOSOME, Alt.ID_UNCERTAIN_CHR, m)
        return None

    def _correct_breakpoints_list(self, rule: Rule) -> Optional[ParseNode]:
        start = self.pos
        der = rule == Rule.DER_BREAKPOINTS
        if self._ahead(P.DETAILED_AHEAD):
            formula = self._attempt(self._detailed_formula)
            if formula is not None:
                alt = Alt.DETAILED_DER_BREAKPOINTS if der else Alt.DETAILED_BREAKPOINTS_LIST
                return self._node(rule, alt, start, [formula])
            return None

        groups = []
        while True:
            group = self._breakpoint_group()
            if group is None:
                return None
            groups.append(group)
            if self._match(P.SEMICOLON) is None:
                break

        if not der:
            alt = Alt.CORRECT_BREAKPOINTS_LIST
        elif any(g.alt == Alt.MULTIPLE_INTERPRETATION_BREAKPOINTS for g in groups):
            alt = Alt.MULTIPLE_INTERPRETATION_DER_BREAKPOINTS
        else:
            alt = Alt.NORMAL_DER_BREAKPOINTS
        return self._node(rule, alt, start, groups)

    def _breakpoint_group(self) -> Optional[ParseNode]:
        start = self.pos
        items = []
        while True:
            item = self._breakpoint_item()
            if item is None:
                break
            items.append(item)
        if not items:
            return None
        alt = (
            Alt.MULTIPLE_INTERPRETATION_BREAKPOINTS
            if any(i.alt == Alt.ALTERNATIVES for i in items)
            else Alt.NORMAL_BREAKPOINTS
        )
        return self._node(Rule.BREAKPOINT_GROUP, alt, start, items)

    def _breakpoint_item(self) -> Optional[ParseNode]:
        start = self.pos
        first = self._breakpoint()
        if first is None:
            return None
        candidates = [first]
        while True:
            mark = self.pos
            if self._match(P.OR) is None:
                break
            candidate = self._breakpoint()
            if candidate is None:
                self.pos = mark
                break
            candidates.append(candidate)
        alt = Alt.ALTERNATIVES if len(candidates) > 1 else Alt.SINGLE
        return self._node(Rule.BREAKPOINT_ITEM, alt, start, candidates)

    def _breakpoint(self, detailed: bool = False) -> Optional[ParseNode]:
        start = self.pos
        groups = {}
        if detailed:
            m = self._match(P.DETAILED_CHROMOSOME)
            if m is not None:
                groups["chr"] = m.group("chr")

        for pattern, alt in (
            (P.BREAKPOINT_TERMINAL, Alt.TERMINAL),
            (P.BREAKPOINT_CENTROMERE, Alt.CENTROMERE),
            (P.BREAKPOINT_BAND, Alt.BAND),
            (P.BREAKPOINT_ARM, Alt.ARM_ONLY),
            (P.BREAKPOINT_UNKNOWN, Alt.UNKNOWN),
        ):
            m = self._match(pattern)
            if m is None:
                continue
            groups.update({k: v for k, v in m.groupdict().items() if v is not None})
            return self._node(Rule.BREAKPOINT, alt, start, [], groups)
        return None

    def _detailed_formula(self) -> Optional[ParseNode]:
        """13pter->13q10::15q10->15qter ; ::p13->q22:: pour un anneau"""
        start = self.pos
        leading = self._match(P.FUSION) is not None
        trailing = False
        segments = []
        while True:
            segment = self._detailed_segment()
            if segment is None:
                return None
            segments.append(segment)
            if self._match(P.FUSION) is None:
                break
            if self._ahead(P.RIGHT_PAREN):
                trailing = True
                break
        if len(segments) == 1 and len(segments[0].children) < 2 and not leading:
            return None
        groups = {"circular": "1"} if leading and trailing else {}
        return self._node(Rule.DETAILED_FORMULA, Alt.DETAILED_FORMULA, start, segments, groups)

    def _detailed_segment(self) -> Optional[ParseNode]:
        start = self.pos
        m = self._match(P.HSR)
        if m is not None:
            return self._leaf(Rule.DETAILED_SEGMENT, Alt.HSR_SEGMENT, m)
        origin = self._breakpoint(detailed=True)
        if origin is None:
            return None
        children = [origin]
        if self._match(P.ARROW) is not None:
            end = self._breakpoint(detailed=True)
            if end is None:
                return None
            children.append(end)
        return self._node(Rule.DETAILED_SEGMENT, Alt.SEGMENT, start, children)

    # ==================== Anomalies: variantes tolérantes ====================

    def _aberration_lenient(self) -> Optional[ParseNode]:
        return self._first(
            self._der_aberration_error,
            self._basic_aberration_error,
            self._incorrect_left_parenthesis,
            self._incorrect_right_parenthesis,
        )

    def _chr_list_any(self, der: bool) -> Optional[ParseNode]:
        """Liste stricte si possible, sinon découpe tolérante, jusqu'à la parenthèse"""
        if der:
            correct = lambda: self._correct_chr_list(Rule.DER_CHR_LIST, Alt.CORRECT_DER_CHR_LIST)
        else:
            correct = self._correct_chr_list
        return self._first(
            lambda: self._closed(correct),
            lambda: self._closed(lambda: self._lax_chr_list(P.LAX_LIST_CONTENT, der)),
        )

    def _breakpoints_any(self, der: bool) -> Optional[ParseNode]:
        rule = Rule.DER_BREAKPOINTS if der else Rule.BREAKPOINTS_LIST
        return self._first(
            lambda: self._closed(lambda: self._correct_breakpoints_list(rule)),
            lambda: self._closed(lambda: self._lax_breakpoints_list(P.LAX_LIST_CONTENT, der)),
        )

    def _der_aberration_error(self) -> Optional[ParseNode]:
        start = self.pos
        if self._match(P.DER) is None:
            return None
        chr_list = self._parenthesized(lambda: self._chr_list_any(der=True))
        if chr_list is None:
            return None
        children = [chr_list]
        breakpoints = None
        if self._ahead(P.LEFT_PAREN):
            breakpoints = self._parenthesized(lambda: self._breakpoints_any(der=True))
            if breakpoints is None:
                return None
            children.append(breakpoints)
        else:
            children += self._rearrangements()
        if _is_flawless(chr_list, breakpoints):
            return None
        return self._node(
            Rule.ABERRATION, Alt.DER_ABERRATION_ERROR, start, children, {"abbrev": "der"}
        )

    def _basic_aberration_error(self) -> Optional[ParseNode]:
        start = self.pos
        m = self._match(P.ABBREVIATION)
        if m is None:
            return None
        chr_list = self._parenthesized(lambda: self._chr_list_any(der=False))
        if chr_list is None:
            return None
        children = [chr_list]
        breakpoints = None
        if self._ahead(P.LEFT_PAREN):
            breakpoints = self._parenthesized(lambda: self._breakpoints_any(der=False))
            if breakpoints is None:
                return None
            children.append(breakpoints)
        if _is_flawless(chr_list, breakpoints):
            return None
        return self._node(
            Rule.ABERRATION,
            Alt.BASIC_ABERRATION_ERROR,
            start,
            children,
            {"abbrev": m.group("abbrev")},
        )

    def _incorrect_left_parenthesis(self) -> Optional[ParseNode]:
        """Parenthèse ouvrante jamais refermée: t(9;22 ou t(9;22)(q34;q11"""
        start = self.pos
        m = self._match(P.ERROR_ABBREVIATION)
        if m is None or self._match(P.LEFT_PAREN) is None:
            return None
        abbrev = m.group("abbrev")
        der = abbrev == "der"
        groups = {"abbrev": abbrev}

        mark = self.pos
        chr_list = self._chr_list_any(der)
        if chr_list is not None and self._match(P.RIGHT_PAREN) is not None:
            if self._match(P.LEFT_PAREN) is None:
                return None
            rule = Rule.DER_BREAKPOINTS if der else Rule.BREAKPOINTS_LIST
            breakpoints = self._first(
                lambda: self._unclosed(lambda: self._correct_breakpoints_list(rule)),
                lambda: self._lax_breakpoints_list(P.UNCLOSED_CONTENT, der),
            )
            if breakpoints is None:
                return None
            children = [chr_list, breakpoints]
        else:
            self.pos = mark
            chr_list = self._lax_chr_list(P.UNCLOSED_CONTENT, der)
            if chr_list is None:
                return None
            children = [chr_list]
        return self._node(Rule.ABERRATION, Alt.INCORRECT_LEFT_PARENTHESIS, start, children, groups)

    def _incorrect_right_parenthesis(self) -> Optional[ParseNode]:
        return self._first(
            self._missing_breakpoints_open,
            self._missing_chr_list_open,
            self._extra_right_parenthesis,
        )

    def _missing_breakpoints_open(self) -> Optional[ParseNode]:
        """t(9;22)q34;q11)"""
        start = self.pos
        m = self._match(P.ERROR_ABBREVIATION)
        if m is None:
            return None
        der = m.group("abbrev") == "der"
        chr_list = self._parenthesized(lambda: self._chr_list_any(der))
        if chr_list is None or self._ahead(P.LEFT_PAREN):
            return None
        breakpoints = self._breakpoints_any(der)
        if breakpoints is None or self._match(P.RIGHT_PAREN) is None:
            return None
        return self._node(
            Rule.ABERRATION,
            Alt.INCORRECT_RIGHT_PARENTHESIS,
            start,
            [chr_list, breakpoints],
            {"abbrev": m.group("abbrev")},
        )

    def _missing_chr_list_open(self) -> Optional[ParseNode]:
        """t9;22)(q34;q11)"""
        start = self.pos
        m = self._match(P.BARE_ABBREVIATION)
        if m is None:
            return None
        der = m.group("abbrev") == "der"
        chr_list = self._chr_list_any(der)
        if chr_list is None or self._match(P.RIGHT_PAREN) is None:
            return None
        children = [chr_list]
        if self._ahead(P.LEFT_PAREN):
            breakpoints = self._parenthesized(lambda: self._breakpoints_any(der))
            if breakpoints is None:
                return None
            children.append(breakpoints)
        return self._node(
            Rule.ABERRATION,
            Alt.INCORRECT_RIGHT_PARENTHESIS,
            start,
            children,
            {"abbrev": m.group("abbrev")},
        )

    def _extra_right_parenthesis(self) -> Optional[ParseNode]:
        """del(5)(q13))"""
        start = self.pos
        inner = self._aberration_strict()
        if inner is None or self._match(P.RIGHT_PAREN) is None:
            return None
        while self._match(P.RIGHT_PAREN) is not None:
            pass
        return self._node(
            Rule.ABERRATION, Alt.INCORRECT_RIGHT_PARENTHESIS, start, inner.children, inner.groups
        )

    def _lax_chr_list(self, content: P, der: bool) -> Optional[ParseNode]:
        """Découpe tolérante d'une liste de chromosomes mal formée"""
        start = self.pos
        m = self._match(content)
        if m is None:
            return None
        items = []
        well_formed = True
        for piece in _LAX_CHR_PIECE.finditer(m.group(0)):
            offset = start + piece.start()
            if piece.group(0) == "?":
                items.append(ParseNode(Rule.CHROMOSOME, Alt.ID_UNCERTAIN_CHR, offset, offset + 1, "?"))
                continue
            chromosome = _COMPILED[P.LAX_CHROMOSOME].fullmatch(piece.group(0))
            if chromosome is None:
                well_formed = False
                continue
            uncertain = chromosome.group("leading") or chromosome.group("trailing")
            groups = {k: v for k, v in chromosome.groupdict().items() if v is not None}
            items.append(
                ParseNode(
                    Rule.CHROMOSOME,
                    Alt.UNCERTAIN_CHR if uncertain else Alt.CHR_NUM,
                    offset,
                    offset + len(piece.group(0)),
                    piece.group(0),
                    groups=groups,
                )
            )
        found = re.findall(P.LAX_SEPARATORS.value, m.group(0))
        # un élément vide (t(;22), 9;;22, 9;22;) laisse un séparateur en trop
        well_formed = (
            well_formed
            and bool(items)
            and set(found) <= {";"}
            and len(found) == len(items) - 1
        )

        if der:
            rule = Rule.DER_CHR_LIST
            alt = Alt.CORRECT_DER_CHR_LIST if well_formed else Alt.INCORRECT_DER_CHR_LIST
        else:
            rule = Rule.CHR_LIST
            alt = Alt.CORRECT_CHR_LIST if well_formed else Alt.INCORRECT_CHR_LIST
        return self._node(rule, alt, start, items)

    def _lax_breakpoints_list(self, content: P, der: bool) -> Optional[ParseNode]:
        """Découpe tolérante d'une liste de points de cassure mal formée"""
        start = self.pos
        m = self._match(content)
        if m is None:
            return None
        text = m.group(0)
        groups = []
        covered = 0
        for piece in _LAX_GROUP_PIECE.finditer(text):
            items = []
            for bp in _COMPILED[P.LAX_BREAKPOINT].finditer(piece.group(0)):
                offset = start + piece.start() + bp.start()
                covered += len(bp.group(0))
                groups_dict = {k: v for k, v in bp.groupdict().items() if v is not None}
                if groups_dict.get("terminal"):
                    alt = Alt.TERMINAL
                elif groups_dict.get("centromere"):
                    alt = Alt.CENTROMERE
                elif groups_dict.get("unknown"):
                    alt = Alt.UNKNOWN
                elif groups_dict.get("band"):
                    alt = Alt.BAND
                else:
                    alt = Alt.ARM_ONLY
                point = ParseNode(
                    Rule.BREAKPOINT, alt, offset, offset + len(bp.group(0)), bp.group(0), groups=groups_dict
                )
                items.append(
                    ParseNode(Rule.BREAKPOINT_ITEM, Alt.SINGLE, point.start, point.end, point.text, [point])
                )
            if items:
                group_start = start + piece.start()
                groups.append(
                    ParseNode(
                        Rule.BREAKPOINT_GROUP,
                        Alt.NORMAL_BREAKPOINTS,
                        group_start,
                        group_start + len(piece.group(0)),
                        piece.group(0),
                        items,
                    )
                )
        separators = set(re.findall(P.LAX_GROUP_SEPARATORS.value, text))
        separator_count = len(re.findall(P.LAX_GROUP_SEPARATORS.value, text))
        well_formed = (
            bool(groups)
            and separators <= {";"}
            and covered + separator_count == len(text)
            and separator_count == len(groups) - 1
        )

        if der:
            rule = Rule.DER_BREAKPOINTS
            alt = Alt.NORMAL_DER_BREAKPOINTS if well_formed else Alt.INCORRECT_DER_BREAKPOINTS_LIST
        else:
            rule = Rule.BREAKPOINTS_LIST
            alt = Alt.CORRECT_BREAKPOINTS_LIST if well_formed else Alt.INCORRECT_BREAKPOINTS_LIST
        return self._node(rule, alt, start, groups)

    # ==================== Nombre de cellules ====================

    def _cell_num(self) -> Optional[ParseNode]:
        m = self._match(P.CELL_NUMBER)
        if m is not None:
            return self._leaf(Rule.CELL_NUM, Alt.CORRECT_CELL_NUM, m)
        m = self._match(P.INCORRECT_CELL_NUMBER)
        if m is not None:
            return self._leaf(Rule.CELL_NUM, Alt.INCORRECT_CELL_NUM, m)
        # crochet fermant sans ouvrant: 46,XX]
        m = self._match(P.UNOPENED_CELL_NUMBER)
        if m is not None:
            return self._leaf(Rule.CELL_NUM, Alt.INCORRECT_CELL_NUM, m)
        return None


# ==================== Fonctions auxiliaires ====================

_INCORRECT_LISTS = {
    Alt.INCORRECT_CHR_LIST,
    Alt.INCORRECT_DER_CHR_LIST,
    Alt.INCORRECT_BREAKPOINTS_LIST,
    Alt.INCORRECT_DER_BREAKPOINTS_LIST,
}
_DETAILED_LISTS = {Alt.DETAILED_BREAKPOINTS_LIST, Alt.DETAILED_DER_BREAKPOINTS}


def _cardinality_ok(chr_list: ParseNode, breakpoints: ParseNode) -> bool:
    """Un groupe de points de cassure par chromosome (sauf formule détaillée)"""
    if breakpoints.alt in _DETAILED_LISTS:
        return True
    return len(breakpoints.children) == len(chr_list.children)


def _is_flawless(chr_list: ParseNode, breakpoints: Optional[ParseNode]) -> bool:
    if chr_list.alt in _INCORRECT_LISTS:
        return False
    if breakpoints is None:
        return True
    if breakpoints.alt in _INCORRECT_LISTS:
        return False
    return _cardinality_ok(chr_list, breakpoints)


class KaryotypeGrammar:
    """
    Analyseur syntaxique ISCN (descente récursive, choix ordonné).

    L'objet est sans état entre deux appels: chaque analyse crée son propre
    `_ParseRun`, on peut donc le partager entre threads.

    Args:
        max_steps: nombre maximal de tentatives de tokens par analyse
        max_length: longueur maximale de l'entrée (sans espaces)
    """

    def __init__(self, max_steps: int = MAX_PARSE_STEPS, max_length: int = MAX_INPUT_LENGTH):
        self.max_steps = max_steps
        self.max_length = max_length

    def parse(self, text: str) -> ParseNode:
        """
        Analyse une ligne ISCN et renvoie l'arbre (racine Rule.ROW).

        Raises:
            FatalSyntaxError: entrée vide, caractère illégal ou reste non analysable
            ParseBudgetExceeded: entrée trop longue ou budget de pas épuisé
        """
        text = "".join(text.split())
        if not text:
            raise FatalSyntaxError("empty karyotype", 0, text)
        if len(text) > self.max_length:
            raise ParseBudgetExceeded(
                f"input longer than {self.max_length} characters", self.max_length, text
            )
        illegal = _COMPILED[P.ILLEGAL_CHARACTER].search(text)
        if illegal is not None:
            raise FatalSyntaxError(f"illegal character {illegal.group(0)!r}", illegal.start(), text)

        run = _ParseRun(text, self.max_steps)
        tree = run.row()
        logger.debug(f"parsed {text!r} in {run.steps} steps")
        return tree


def parse(text: str) -> ParseNode:
    """Raccourci: analyse avec les bornes par défaut"""
    return KaryotypeGrammar().parse(text)
