from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union
import logging

from .config import Bounds, resolve
from .expressions import Expr, convert
from .patterns import Pattern, Replacement, as_pattern, build, match, replace

_logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Rule:
    name        : str
    pattern     : Pattern
    replacement : Replacement
    description : str = ""

    def __post_init__(self):
        object.__setattr__(self, "pattern", as_pattern(self.pattern))

    def apply(self, expr : Expr, bounds : Optional[Bounds] = None) -> Optional[Expr]:
        """The rewritten expression, or None when the rule does not fire."""
        b = match(expr, self.pattern, bounds=bounds)
        if b is None:
            return None
        result = build(self.replacement, b)
        if result == expr:
            return None
        return result

@dataclass(frozen=True)
class RewriteStep:
    rule   : str
    before : Expr
    after  : Expr

@dataclass
class RewriteTrace:
    initial : Expr
    steps   : List[RewriteStep] = field(default_factory=list)
    final   : Optional[Expr] = None

    def rules_applied(self) -> List[str]:
        return [step.rule for step in self.steps]

    def __len__(self):
        return len(self.steps)

    def format(self) -> str:
        if not self.steps:
            return "(no rules applied)"
        lines = [f"Initial: {self.initial}"]
        for step in self.steps:
            lines.append(f"  {step.before} --[{step.rule}]--> {step.after}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

class RuleSet:
    """
    Rules applied bottom-up until nothing changes.

    Within one pass, children are rewritten before their parent and the first
    rule that fires at a node wins. Passes repeat until the tree is stable or
    `rewrite_max_iterations` rule applications have happened, in which case
    the latest tree is returned.
    """
    def __init__(self, rules : Sequence[Rule], bounds : Optional[Bounds] = None):
        self.rules = list(rules)
        self.bounds = resolve(bounds)
        names = [rule.name for rule in self.rules]
        if len(set(names)) != len(names):
            raise ValueError("rule names must be unique")

    def __len__(self):
        return len(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def __add__(self, other : 'RuleSet') -> 'RuleSet':
        return RuleSet(self.rules + other.rules, self.bounds)

    def __call__(self, expr, trace : bool = False) -> Union[Expr, Tuple[Expr, RewriteTrace]]:
        return self.rewrite(expr, trace)

    def rewrite(self, expr, trace : bool = False) -> Union[Expr, Tuple[Expr, RewriteTrace]]:
        expr = convert(expr)
        record = RewriteTrace(expr)
        budget = [self.bounds.rewrite_max_iterations]
        while budget[0] > 0:
            new = self._pass(expr, record, budget)
            if new == expr:
                break
            expr = new
        else:
            _logger.warning("rewriting stopped after %d rule applications",
                            self.bounds.rewrite_max_iterations)
        record.final = expr
        if trace:
            return expr, record
        return expr

    def _pass(self, expr, record, budget):
        if budget[0] <= 0:
            return expr
        if any(True for _ in expr.subexpressions()):
            expr = expr.rebuild(lambda u: self._pass(u, record, budget))
        for rule in self.rules:
            if budget[0] <= 0:
                break
            result = rule.apply(expr, self.bounds)
            if result is not None:
                budget[0] -= 1
                record.steps.append(RewriteStep(rule.name, expr, result))
                _logger.debug("%s: %s -> %s", rule.name, expr, result)
                return result
        return expr

def identity_rules(bounds : Optional[Bounds] = None) -> RuleSet:
    """The structural identities of every registered function as a RuleSet."""
    from .functions import registry
    rules = []
    for name in registry.names():
        props = registry.lookup(name)
        for i, (lhs, rhs) in enumerate(props.identities):
            rules.append(Rule(f"{name}-identity-{i}", lhs, rhs,
                              f"structural identity {i} of {name}"))
    return RuleSet(rules, bounds)

__all__ = ["Rule", "RuleSet", "RewriteStep", "RewriteTrace", "identity_rules", "replace"]
