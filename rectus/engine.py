"""
Simplify Driver for RECTUS

RECTUS - Rewriting Expressions to Canonical Terms Under Simplification

The Engine repeats a canonicalize -> match -> rewrite cycle until nothing
changes:

    1. canonicalize the whole tree
    2. walk it innermost-first; at each node try the rules for its head in
       priority order, and take the first rewrite whose canonical form
       differs from the node
    3. splice the rewrite in, canonicalize, and start again

The loop stops at a fixed point, when a rewrite reproduces a form already
seen (a rule cycle), or when config.max_steps rewrites have been made. The
last two cases return the smallest form seen instead of raising.

Example:
    from rectus import Engine, E

    engine = Engine()
    engine.simplify(E("(Add x (Multiply 2 x))"))     # (Multiply 3 x)
    engine.simplify(["Add", "x", 0])                 # "x"

    result, trace = engine.simplify(E("(Sqrt (Power x 6))"), trace=True)
    print(trace.format("rules"))

Tracing:
    Use Engine.simplify(expr, trace=True) to see which rules are applied.
"""

import json
import logging
import threading
from collections import OrderedDict
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .canonical import canonicalize as _canonicalize
from .catalogue import default_rulebook
from .config import DEFAULT_CONFIG, EngineConfig
from .expr import Expr, Apply, box, format_sexpr, head_of, parse_sexpr, to_json
from .rewriter import Bindings, FoldFuncsType, FULL_PRELUDE
from .rules import Rule, RuleBook, RuleMetadata

logger = logging.getLogger(__name__)

STRATEGIES = ("exhaustive", "once")


# ============================================================
# Traces
# ============================================================

class RewriteStep:
    """A single step in a rewriting trace."""

    def __init__(self, metadata: RuleMetadata, before: Expr, after: Expr):
        self.metadata = metadata
        self.before = before
        self.after = after

    @property
    def name(self) -> str:
        return self.metadata.name or "<unnamed>"

    def __repr__(self) -> str:
        return f"{self.name}: {format_sexpr(self.before)} -> {format_sexpr(self.after)}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_name": self.metadata.name,
            "description": self.metadata.description,
            "before": to_json(self.before),
            "after": to_json(self.after),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing rule chain
        - format("rules"): just the rule names applied
        - format("verbose"): full details with before/after
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Expr] = None
        self.final: Optional[Expr] = None
        self.stopped: Optional[str] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            rules = [s.name for s in self.steps]
            return f"{format_sexpr(self.initial)} --[{', '.join(rules)}]--> {format_sexpr(self.final)}"

        elif style == "rules":
            rules = [s.name for s in self.steps]
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "chain":
            if not self.steps:
                return format_sexpr(self.initial)
            parts = [format_sexpr(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.name})-->")
                parts.append(format_sexpr(step.after))
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {format_sexpr(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            if step.metadata.description:
                lines.append(f"  {i}. {step.metadata} ({step.metadata.description})")
            else:
                lines.append(f"  {i}. {step}")
        lines.append(f"Final: {format_sexpr(self.final)}")
        if self.stopped:
            lines.append(f"Stopped: {self.stopped}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": to_json(self.initial),
            "final": to_json(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
            "stopped": self.stopped,
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.name] = counts.get(step.name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        return [s.name for s in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the rewriting."""
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Engine
# ============================================================

def _smallest(forms) -> Expr:
    return min(forms, key=lambda node: (node.size(), node.sort_key))


class Engine:
    """
    Canonicalizes and simplifies expressions with a rule book.

    Methods accept either expression trees or JSON values. A tree in gives a
    tree out; JSON in gives JSON out.

    Example:
        engine = Engine(EngineConfig(precision=30))
        engine.disable_group("distribute")
        engine.simplify(["Add", ["Power", ["Add", "x", 1], 2], ["Negate", ["Power", "x", 2]]])
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 rules: Optional[RuleBook] = None,
                 fold_funcs: Optional[FoldFuncsType] = None):
        self.config = config or DEFAULT_CONFIG
        self.rules = rules if rules is not None else default_rulebook()
        self.fold_funcs = fold_funcs if fold_funcs is not None else FULL_PRELUDE
        self._disabled_groups: set = set()
        self._memo: "OrderedDict[Expr, Expr]" = OrderedDict()
        self._lock = threading.Lock()

    # ---- configuration ------------------------------------------------

    def with_config(self, config: EngineConfig) -> 'Engine':
        """A new engine sharing this engine's rules and group settings."""
        engine = Engine(config, self.rules.copy(), self.fold_funcs)
        engine._disabled_groups = set(self._disabled_groups)
        return engine

    def disable_group(self, group: str) -> 'Engine':
        """Disable all rules in a group."""
        self._disabled_groups.add(group)
        self._clear_memo()
        return self

    def enable_group(self, group: str) -> 'Engine':
        """Re-enable a previously disabled group."""
        self._disabled_groups.discard(group)
        self._clear_memo()
        return self

    def groups(self) -> set:
        """Get all group names used by the loaded rules."""
        return self.rules.groups()

    @property
    def disabled_groups(self) -> set:
        return set(self._disabled_groups)

    def _is_rule_active(self, metadata: RuleMetadata, groups: Optional[List[str]] = None) -> bool:
        """
        A rule is active if it is not in a disabled group and, when groups
        is given, it belongs to one of them.
        """
        if any(tag in self._disabled_groups for tag in metadata.tags):
            return False
        if groups is not None:
            return any(tag in groups for tag in metadata.tags)
        return True

    # ---- loading --------------------------------------------------------

    def load_dsl(self, text: str) -> 'Engine':
        """Load rules from DSL text."""
        self.rules.load_dsl(text)
        self._clear_memo()
        return self

    def load_file(self, path: Union[str, Path]) -> 'Engine':
        """Load rules from a file (.rules or .json)."""
        self.rules.load_file(path)
        self._clear_memo()
        return self

    def add_parsed(self, parsed: List[Tuple[RuleMetadata, List]]) -> 'Engine':
        """Add rules as returned by load_rules_from_dsl()."""
        self.rules.add_parsed(parsed)
        self._clear_memo()
        return self

    def add_rule(self, pattern: Any, skeleton: Any, name: Optional[str] = None,
                 description: Optional[str] = None, group: Optional[str] = None,
                 priority: int = 0, condition: Any = None) -> 'Engine':
        """
        Add a single declarative rule. Pattern, skeleton and condition are
        s-expression strings or JSON-shaped lists.

        Example:
            engine.add_rule("(Exp (Ln ?x))", ":x", name="exp-ln", group="logarithms")
        """
        def parsed(data):
            return parse_sexpr(data) if isinstance(data, str) else data

        metadata = RuleMetadata(
            name=name,
            description=description,
            tags=[group] if group else [],
            condition=parsed(condition) if condition is not None else None,
            priority=priority,
        )
        self.rules.add(Rule.from_parsed(metadata, parsed(pattern), parsed(skeleton)))
        self._clear_memo()
        return self

    # ---- single steps ---------------------------------------------------

    def _apply_rules(self, node: Expr, groups: Optional[List[str]] = None) -> Optional[Tuple[Expr, Rule]]:
        """First rule whose canonical rewrite of node differs from node."""
        for rule in self.rules.rules_for(head_of(node)):
            if not self._is_rule_active(rule.metadata, groups):
                continue
            try:
                candidate = rule.apply(node, self.config, self.fold_funcs)
                if candidate is None:
                    continue
                candidate = _canonicalize(candidate, self.config)
            except (ArithmeticError, ValueError, RecursionError) as exc:
                logger.warning("Rule %s failed on %s: %s", rule.metadata.name, format_sexpr(node), exc)
                continue
            if candidate != node:
                return candidate, rule
        return None

    def _rewrite_first(self, node: Expr, groups: Optional[List[str]] = None) -> Optional[Tuple[Expr, Rule]]:
        """Rewrite the innermost node some rule applies to."""
        if isinstance(node, Apply):
            for i, child in enumerate(node.args):
                found = self._rewrite_first(child, groups)
                if found is not None:
                    new_child, rule = found
                    return Apply(node.head, node.args[:i] + (new_child,) + node.args[i + 1:]), rule
        return self._apply_rules(node, groups)

    def apply_once(self, expr: Any, groups: Optional[List[str]] = None) -> Tuple[Any, Optional[RuleMetadata]]:
        """
        Apply at most one rule at the top of the expression.

        Does not recurse into subexpressions.

        Returns:
            Tuple of (result, metadata), metadata being None if no rule applied.

        Example:
            result, applied = engine.apply_once(E("(Abs (Abs x))"))
            if applied:
                print(f"Applied rule: {applied.name}")
        """
        node, as_json = self._coerce(expr)
        node = _canonicalize(node, self.config)
        found = self._apply_rules(node, groups)
        if found is None:
            return self._result(node, as_json), None
        result, rule = found
        return self._result(result, as_json), rule.metadata

    def rules_matching(self, expr: Any, check_conditions: bool = True,
                       groups: Optional[List[str]] = None) -> List[Tuple[RuleMetadata, Bindings]]:
        """
        Find all rules whose pattern (and condition) matches the expression.

        Useful for debugging and understanding why an expression isn't simplifying.
        A matching procedural rule may still decline to rewrite.

        Example:
            for meta, bindings in engine.rules_matching(E("(Add x x)")):
                print(f"Rule {meta.name} matches with {bindings.to_dict()}")
        """
        node, _ = self._coerce(expr)
        node = _canonicalize(node, self.config)
        matching = []
        for rule in self.rules.rules_for(head_of(node)):
            if not self._is_rule_active(rule.metadata, groups):
                continue
            raw = rule.bindings(node, self.config, self.fold_funcs, check_condition=check_conditions)
            if raw is not None:
                matching.append((rule.metadata, Bindings(raw)))
        return matching

    # ---- simplification ------------------------------------------------

    def canonicalize(self, expr: Any) -> Any:
        """Canonical form of the expression, without applying any rule."""
        node, as_json = self._coerce(expr)
        return self._result(_canonicalize(node, self.config), as_json)

    def simplify(self, expr: Any, trace: bool = False, strategy: str = "exhaustive",
                 groups: Optional[List[str]] = None):
        """
        Simplify an expression.

        Args:
            expr: Expression tree or JSON value
            trace: If True, return (result, trace) tuple
            strategy: Rewriting strategy (default: "exhaustive")
                - "exhaustive": rewrite until a fixed point, a cycle or the
                  step bound
                - "once": apply at most one rule anywhere in the expression
            groups: If specified, only use rules from these groups.
                    If None, use all rules except those in disabled groups.

        Returns:
            Simplified expression, or (expression, trace) if trace=True

        Raises:
            ValueError: for an unknown strategy, or input that is not JSON-shaped
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {strategy}. "
                             f"Valid options: {', '.join(STRATEGIES)}")
        node, as_json = self._coerce(expr)
        trace_obj = RewriteTrace() if trace else None
        if trace_obj is not None:
            trace_obj.initial = node

        if strategy == "once":
            result = self._simplify_once(node, trace_obj, groups)
        elif trace_obj is None and groups is None:
            result = self._simplify_memoized(node)
        else:
            result = self._simplify_exhaustive(node, trace_obj, groups)

        if trace_obj is not None:
            trace_obj.final = result
            return self._result(result, as_json), trace_obj
        return self._result(result, as_json)

    def _simplify_once(self, node: Expr, trace_obj: Optional[RewriteTrace],
                       groups: Optional[List[str]]) -> Expr:
        current = _canonicalize(node, self.config)
        found = self._rewrite_first(current, groups)
        if found is None:
            return current
        after, rule = found
        after = _canonicalize(after, self.config)
        if trace_obj is not None:
            trace_obj.add_step(RewriteStep(rule.metadata, current, after))
        return after

    def _simplify_memoized(self, node: Expr) -> Expr:
        start = _canonicalize(node, self.config)
        if self.config.cache_size == 0:
            return self._simplify_exhaustive(start, None, None)
        with self._lock:
            if start in self._memo:
                self._memo.move_to_end(start)
                return self._memo[start]
        result = self._simplify_exhaustive(start, None, None)
        with self._lock:
            self._memo[start] = result
            while len(self._memo) > self.config.cache_size:
                self._memo.popitem(last=False)
        return result

    def _simplify_exhaustive(self, node: Expr, trace_obj: Optional[RewriteTrace],
                             groups: Optional[List[str]]) -> Expr:
        current = _canonicalize(node, self.config)
        seen = {current}
        for _ in range(self.config.max_steps):
            found = self._rewrite_first(current, groups)
            if found is None:
                return current
            after, rule = found
            after = _canonicalize(after, self.config)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%s: %s -> %s", rule.metadata.name,
                             format_sexpr(current), format_sexpr(after))
            if trace_obj is not None:
                trace_obj.add_step(RewriteStep(rule.metadata, current, after))
            if after in seen:
                logger.info("Rule %s reproduced an earlier form; stopping", rule.metadata.name)
                if trace_obj is not None:
                    trace_obj.stopped = "cycle"
                return _smallest(seen)
            seen.add(after)
            current = after

        logger.info("Stopped after %d rewrite steps", self.config.max_steps)
        if trace_obj is not None:
            trace_obj.stopped = "max_steps"
        return _smallest(seen)

    def _clear_memo(self) -> None:
        with self._lock:
            self._memo.clear()

    # ---- conversion ----------------------------------------------------

    @staticmethod
    def _coerce(expr: Any) -> Tuple[Expr, bool]:
        if isinstance(expr, Expr):
            return expr, False
        return box(expr), True

    def _result(self, node: Expr, as_json: bool) -> Any:
        return to_json(node, self.config) if as_json else node

    # ---- export --------------------------------------------------------

    def list_rules(self) -> List[str]:
        """List all rules in DSL format; procedural rules appear as comments."""
        return [rule.to_dsl() for rule in self.rules]

    def to_dsl(self, name: Optional[str] = None) -> str:
        """
        Export rules to DSL format string, organized by groups.

        Args:
            name: Optional name to include as a comment header
        """
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")

        current_group = None
        for rule in self.rules:
            rule_group = rule.metadata.tags[0] if rule.metadata.tags else None
            if rule_group != current_group:
                if rule_group:
                    if lines and lines[-1] != "":
                        lines.append("")
                    lines.append(f"[{rule_group}]")
                current_group = rule_group
            lines.append(rule.to_dsl())

        return "\n".join(lines)

    def to_json(self, name: Optional[str] = None, indent: Optional[int] = 2) -> str:
        """
        Export the declarative rules to a JSON string accepted by
        load_rules_from_json(). Procedural rules have no JSON form and are
        left out.
        """
        rules_list = []
        for rule in self.rules:
            if rule.action is not None:
                continue
            meta = rule.metadata
            pattern, skeleton = rule.source
            rule_dict = {"pattern": pattern, "skeleton": skeleton}
            if meta.name:
                rule_dict["name"] = meta.name
            if meta.description:
                rule_dict["description"] = meta.description
            if meta.priority != 0:
                rule_dict["priority"] = meta.priority
            if meta.condition:
                rule_dict["condition"] = meta.condition
            if meta.tags:
                rule_dict["tags"] = meta.tags
            rules_list.append(rule_dict)

        result = {"rules": rules_list}
        if name:
            result["name"] = name
        return json.dumps(result, indent=indent)

    def copy(self) -> 'Engine':
        return self.with_config(self.config)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"Engine({len(self.rules)} rules, precision={self.config.precision})"

    def __call__(self, expr: Any, **kwargs) -> Any:
        """Make engine callable: engine(expr) is shorthand for engine.simplify(expr)."""
        return self.simplify(expr, **kwargs)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __contains__(self, name: str) -> bool:
        """Check if a named rule exists: 'like-terms' in engine."""
        return name in self.rules

    def __getitem__(self, name: str) -> Rule:
        rule = self.rules.get(name)
        if rule is None:
            raise KeyError(f"No rule named '{name}'")
        return rule


# ============================================================
# Module-level API
# ============================================================

@lru_cache(maxsize=16)
def _engine_for(config: EngineConfig) -> Engine:
    return Engine(config)


def simplify(expr: Any, config: Optional[EngineConfig] = None) -> Any:
    """
    Simplify a JSON expression (or expression tree) with the default rules.

    Example:
        simplify(["Add", "x", ["Multiply", 2, "x"]])    # ["Multiply", 3, "x"]
    """
    return _engine_for(config or DEFAULT_CONFIG).simplify(expr)


def canonicalize(expr: Any, config: Optional[EngineConfig] = None) -> Any:
    """Canonical form of a JSON expression (or expression tree)."""
    return _engine_for(config or DEFAULT_CONFIG).canonicalize(expr)
