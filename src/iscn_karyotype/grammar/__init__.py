from .engine import KaryotypeGrammar, parse
from .errors import FatalSyntaxError, ParseBudgetExceeded
from .patterns import KaryotypePatterns
from .tree import Alt, ParseNode, Rule

__all__ = [
    "KaryotypeGrammar",
    "parse",
    "FatalSyntaxError",
    "ParseBudgetExceeded",
    "KaryotypePatterns",
    "Alt",
    "ParseNode",
    "Rule",
]
