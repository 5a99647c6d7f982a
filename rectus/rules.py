"""
Rules, Rule Books and the DSL Loader for RECTUS

A rule pairs a pattern with either a skeleton (declarative rules, written
in the DSL) or a Python action (procedural rules, for rewrites that need
to look at a whole argument list, such as collecting like terms).

DSL Format (.rules files):
    # Comment
    @rule-name: (pattern) => (skeleton)
    @rule-name "Description text": (pattern) => (skeleton)
    @rule-name[priority] "Description": (pattern) => (skeleton) when (condition)

    [group]                 - following rules belong to group
    :include other.rules    - include rules from another file

    Examples:
    @abs-abs: (Abs (Abs ?x)) => (Abs :x)
    @abs-even-power: (Power (Abs ?x) ?n:const) => (Power :x :n) when (! even-numerator? :n)

JSON Format:
    {
        "name": "ruleset-name",
        "rules": [
            {"name": "abs-abs", "pattern": [...], "skeleton": [...],
             "priority": 10, "condition": [...], "tags": ["abs"]},
            or just [pattern, skeleton]
        ]
    }

Rule books index rules by the head of their pattern; within a head,
higher priority fires first and equal priorities keep insertion order.
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .config import EngineConfig
from .expr import Expr, format_sexpr, parse_sexpr
from .rewriter import (
    Bindings, FoldFuncsType, FULL_PRELUDE, compile_template, instantiate,
    match, template_head, truth,
)

# Procedural rule action: (expr, bindings, config) -> rewritten expr or None
RuleAction = Callable[[Expr, Bindings, EngineConfig], Optional[Expr]]

ANY_HEAD = "*"


# ============================================================
# Metadata and DSL Parsing
# ============================================================

class RuleMetadata:
    """Metadata for a rule including name, description, priority, and condition."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None, condition: Optional[Any] = None,
                 priority: int = 0):
        self.name = name
        self.description = description
        self.tags = tags or []
        self.condition = condition  # Optional guard condition (parsed s-expression)
        self.priority = priority  # Higher priority fires first (default: 0)

    def __repr__(self) -> str:
        if self.name:
            base = f"@{self.name}[{self.priority}]" if self.priority != 0 else f"@{self.name}"
            if self.description:
                base += f" \"{self.description}\""
        else:
            base = "<anonymous>"

        if self.condition is not None:
            base += f" when {format_sexpr(self.condition)}"
        return base


_HEADER_FORMS = [
    re.compile(r'@([\w-]+)\[(-?\d+)\]\s+"([^"]+)":\s*(.+)'),
    re.compile(r'@([\w-]+)\[(-?\d+)\]:\s*(.+)'),
    re.compile(r'@([\w-]+)\s+"([^"]+)":\s*(.+)'),
    re.compile(r'@([\w-]+):\s*(.+)'),
]


def _split_header(line: str, metadata: RuleMetadata) -> str:
    """Strip an @name[priority] "description": header into metadata."""
    for form in _HEADER_FORMS:
        m = form.match(line)
        if not m:
            continue
        groups = m.groups()
        metadata.name = groups[0]
        if len(groups) == 4:
            metadata.priority = int(groups[1])
            metadata.description = groups[2]
        elif len(groups) == 3 and form.pattern.startswith(r'@([\w-]+)\['):
            metadata.priority = int(groups[1])
        elif len(groups) == 3:
            metadata.description = groups[1]
        return groups[-1]
    return line


def _find_when(text: str) -> int:
    """Position of a top-level 'when' keyword, or -1."""
    depth = 0
    for i, c in enumerate(text):
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
        elif depth == 0 and text[i:i + 4] == 'when' and (i == 0 or text[i - 1].isspace()):
            after = i + 4
            if after >= len(text) or text[after].isspace():
                return i
    return -1


def parse_rule_line(line: str) -> Optional[Tuple[RuleMetadata, Any, Any]]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern => skeleton
        @name[priority]: pattern => skeleton
        @name "description": pattern => skeleton
        @name[priority] "description": pattern => skeleton
        @name: pattern => skeleton when condition
        pattern => skeleton

    Returns: (metadata, pattern, skeleton) as parsed s-expressions,
    or None if the line is not a rule
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    metadata = RuleMetadata()
    if line.startswith('@'):
        line = _split_header(line, metadata)

    if '=>' not in line:
        return None

    pattern_str, rest = (part.strip() for part in line.split('=>', 1))
    skeleton_str = rest
    when_pos = _find_when(rest)
    if when_pos >= 0:
        skeleton_str = rest[:when_pos].strip()
        metadata.condition = parse_sexpr(rest[when_pos + 4:].strip())

    pattern = parse_sexpr(pattern_str)
    skeleton = parse_sexpr(skeleton_str)
    if pattern is None or skeleton is None:
        return None
    return metadata, pattern, skeleton


def load_rules_from_dsl(
    text: str,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> List[Tuple[RuleMetadata, List]]:
    """
    Load rules from DSL text.

    Supports:
    - Named groups: [groupname]
    - File includes: :include path/to/file.rules

    Args:
        text: DSL text containing rules
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection

    Returns:
        List of (metadata, [pattern, skeleton]) tuples

    Raises:
        ValueError: on circular includes
        FileNotFoundError: when an included file does not exist
    """
    rules = []
    current_group = None

    if _included_files is None:
        _included_files = set()

    for line in text.split('\n'):
        line_stripped = line.strip()

        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip()
            continue

        if line_stripped.startswith(':include '):
            include_path_str = line_stripped[9:].strip()
            if include_path_str:
                include_path = base_path / include_path_str if base_path else Path(include_path_str)
                abs_path = include_path.resolve()
                if abs_path in _included_files:
                    raise ValueError(f"Circular include detected: {include_path}")
                if not include_path.exists():
                    raise FileNotFoundError(f"Include file not found: {include_path}")
                _included_files.add(abs_path)
                included_rules = load_rules_from_file(include_path, _included_files=_included_files)
                for meta, _ in included_rules:
                    if current_group and not meta.tags:
                        meta.tags.append(current_group)
                rules.extend(included_rules)
            continue

        result = parse_rule_line(line)
        if result:
            metadata, pattern, skeleton = result
            if current_group and current_group not in metadata.tags:
                metadata.tags.append(current_group)
            rules.append((metadata, [pattern, skeleton]))
    return rules


def load_rules_from_file(
    path: Union[str, Path],
    _included_files: Optional[set] = None
) -> List[Tuple[RuleMetadata, List]]:
    """
    Load rules from a .rules or .json file.

    Raises:
        FileNotFoundError: if the file does not exist
    """
    path = Path(path)
    text = path.read_text()

    if path.suffix == '.json':
        return load_rules_from_json(text)
    return load_rules_from_dsl(text, base_path=path.parent, _included_files=_included_files)


def load_rules_from_json(text: str) -> List[Tuple[RuleMetadata, List]]:
    """
    Load rules from JSON text.

    Raises:
        ValueError: if the text is not valid JSON
    """
    data = json.loads(text)
    rules = []

    for rule in data.get('rules', []):
        if isinstance(rule, dict):
            metadata = RuleMetadata(
                name=rule.get('name'),
                description=rule.get('description'),
                tags=rule.get('tags'),
                priority=rule.get('priority', 0),
                condition=rule.get('condition'),
            )
            pattern = rule['pattern']
            skeleton = rule['skeleton']
        else:
            metadata = RuleMetadata()
            pattern, skeleton = rule[0], rule[1]
        rules.append((metadata, [pattern, skeleton]))

    return rules


# ============================================================
# Rules
# ============================================================

class Rule:
    """
    A compiled rewrite rule.

    Declarative rules carry a skeleton; procedural rules carry an action
    called with (expr, bindings, config) that returns the replacement or
    None to decline.
    """

    __slots__ = ("pattern", "skeleton", "action", "metadata", "condition", "source")

    def __init__(self, pattern: Any, metadata: RuleMetadata,
                 skeleton: Any = None, action: Optional[RuleAction] = None,
                 source: Optional[Tuple[Any, Any]] = None):
        if (skeleton is None) == (action is None):
            raise ValueError("A rule needs exactly one of skeleton or action")
        self.pattern = pattern
        self.skeleton = skeleton
        self.action = action
        self.metadata = metadata
        self.condition = compile_template(metadata.condition) if metadata.condition is not None else None
        self.source = source

    @classmethod
    def from_parsed(cls, metadata: RuleMetadata, pattern: Any, skeleton: Any) -> "Rule":
        return cls(compile_template(pattern), metadata,
                   skeleton=compile_template(skeleton), source=(pattern, skeleton))

    @property
    def head(self) -> str:
        return template_head(self.pattern) or ANY_HEAD

    def bindings(self, expr: Expr, config: EngineConfig,
                 fold_funcs: FoldFuncsType = FULL_PRELUDE,
                 check_condition: bool = True) -> Optional[List[List]]:
        """Raw bindings if the pattern (and condition) accept expr, else None."""
        raw = match(self.pattern, expr, [])
        if raw == "failed":
            return None
        if check_condition and self.condition is not None:
            verdict = instantiate(self.condition, raw, fold_funcs, config.decimal_context())
            if not truth(verdict):
                return None
        return raw

    def apply(self, expr: Expr, config: EngineConfig,
              fold_funcs: FoldFuncsType = FULL_PRELUDE) -> Optional[Expr]:
        """Rewrite expr with this rule, or return None if it does not apply."""
        raw = self.bindings(expr, config, fold_funcs)
        if raw is None:
            return None
        if self.action is not None:
            return self.action(expr, Bindings(raw), config)
        return instantiate(self.skeleton, raw, fold_funcs, config.decimal_context())

    def to_dsl(self) -> str:
        meta = self.metadata
        header = ""
        if meta.name:
            header = f"@{meta.name}[{meta.priority}]" if meta.priority else f"@{meta.name}"
            if meta.description:
                header += f" \"{meta.description}\""
            header += ": "
        pattern, skeleton = self.source
        if self.action is not None:
            return f"# {header}{format_sexpr(pattern)} => <{self.action.__name__}>"
        line = f"{header}{format_sexpr(pattern)} => {format_sexpr(skeleton)}"
        if meta.condition is not None:
            line += f" when {format_sexpr(meta.condition)}"
        return line

    def __repr__(self) -> str:
        return f"Rule({self.metadata!r})"


# ============================================================
# Rule Books
# ============================================================

class RuleBook:
    """
    An ordered collection of rules indexed by pattern head.

    Example:
        book = RuleBook()
        book.load_dsl('''
            [abs]
            @abs-abs: (Abs (Abs ?x)) => (Abs :x)
        ''')

        @book.rule("(Add ?terms...)", name="my-rule", group="arithmetic")
        def my_rule(expr, bindings, config):
            ...
    """

    def __init__(self):
        self._tables: Dict[str, List[Rule]] = {}
        self._order: List[Rule] = []

    def add(self, rule: Rule) -> 'RuleBook':
        """Add a compiled rule, keeping each head table sorted by priority."""
        self._order.append(rule)
        table = self._tables.setdefault(rule.head, [])
        table.append(rule)
        table.sort(key=lambda r: -r.metadata.priority)
        return self

    def add_parsed(self, parsed: List[Tuple[RuleMetadata, List]]) -> 'RuleBook':
        for metadata, (pattern, skeleton) in parsed:
            self.add(Rule.from_parsed(metadata, pattern, skeleton))
        return self

    def load_dsl(self, text: str) -> 'RuleBook':
        """Load rules from DSL text."""
        return self.add_parsed(load_rules_from_dsl(text))

    def load_file(self, path: Union[str, Path]) -> 'RuleBook':
        """Load rules from a file (.rules or .json)."""
        return self.add_parsed(load_rules_from_file(path))

    def load_json(self, text: str) -> 'RuleBook':
        return self.add_parsed(load_rules_from_json(text))

    def rule(self, pattern: str, name: str, description: Optional[str] = None,
             group: Optional[str] = None, priority: int = 0,
             condition: Optional[str] = None):
        """
        Decorator registering a procedural rule.

        Args:
            pattern: DSL pattern the rule is tried against
            name: Rule name
            description: Human-readable description
            group: Group (tag) the rule belongs to
            priority: Higher priority fires first among rules for the same head
            condition: Optional DSL guard, e.g. "(! positive? :n)"
        """
        def decorator(action: RuleAction) -> RuleAction:
            metadata = RuleMetadata(
                name=name,
                description=description or (action.__doc__ or "").strip().split("\n")[0] or None,
                tags=[group] if group else [],
                condition=parse_sexpr(condition) if condition else None,
                priority=priority,
            )
            parsed = parse_sexpr(pattern)
            self.add(Rule(compile_template(parsed), metadata, action=action, source=(parsed, None)))
            return action
        return decorator

    def rules_for(self, head: Optional[str]) -> List[Rule]:
        """Rules to try on a node with the given head, in firing order."""
        specific = self._tables.get(head, []) if head is not None else []
        generic = self._tables.get(ANY_HEAD, [])
        if not generic:
            return specific
        return sorted(specific + generic, key=lambda r: -r.metadata.priority)

    def get(self, name: str) -> Optional[Rule]:
        for rule in self._order:
            if rule.metadata.name == name:
                return rule
        return None

    def groups(self) -> set:
        all_groups = set()
        for rule in self._order:
            all_groups.update(rule.metadata.tags)
        return all_groups

    def copy(self) -> 'RuleBook':
        book = RuleBook()
        for rule in self._order:
            book.add(rule)
        return book

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def __repr__(self) -> str:
        return f"RuleBook({len(self._order)} rules, groups={sorted(self.groups())})"
