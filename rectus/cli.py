#!/usr/bin/env python3
"""
RECTUS Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    rectus                                  # Start REPL
    rectus script.rectus                    # Run script
    rectus -e "(Add x (Multiply 2 x))"      # Simplify an s-expression
    rectus -j '["Add", "x", 0]'             # Simplify a JSON expression
    rectus -r extra.rules -e "(Exp (Ln x))" # One-shot with extra rules
    echo '(Add x 0)' | rectus               # Filter mode

Script Format (.rectus files):
    #!/usr/bin/env rectus
    :precision 30
    :load extra.rules

    @exp-ln: (Exp (Ln ?x)) => :x

    (Add x (Multiply 2 x))
    (Sqrt (Power x 6))

REPL Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :precision N       Set the number of significant digits
    :json on|off       Read and print JSON instead of s-expressions
    :trace on|off      Toggle tracing
    :strategy NAME     Set strategy (exhaustive, once)
    :groups            Show groups
    :enable GROUP      Enable group
    :disable GROUP     Disable group
    :quit              Exit
"""

import argparse
import glob
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .config import DEFAULT_CONFIG, EngineConfig
from .engine import Engine, STRATEGIES
from .expr import format_sexpr, parse_sexpr
from .rules import load_rules_from_dsl

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


class RectusCompleter:
    """Tab completer for the RECTUS REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":load", ":rules", ":precision", ":json",
        ":trace", ":strategy",
        ":groups", ":enable", ":disable",
    ]

    ON_OFF = ["on", "off"]

    def __init__(self, repl: 'RectusREPL'):
        self.repl = repl
        self.matches: list = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        line = line.lstrip()

        if line.startswith(":strategy "):
            return [s for s in STRATEGIES if s.startswith(text)]

        if line.startswith(":trace ") or line.startswith(":json "):
            return [t for t in self.ON_OFF if t.startswith(text)]

        if line.startswith(":enable ") or line.startswith(":disable "):
            return [g for g in sorted(self.repl.engine.groups()) if g.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        if text.startswith("@"):
            names = ["@" + rule.metadata.name for rule in self.repl.engine if rule.metadata.name]
            return [r for r in names if r.startswith(text)]

        return []

    def _complete_path(self, text: str) -> list:
        pattern = (text or "./") + "*"
        matches = []
        for path in glob.glob(pattern):
            matches.append(path + "/" if Path(path).is_dir() else path)
        return matches


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    in_string = False
    escape = False

    for c in text:
        if escape:
            escape = False
            continue
        if c == '\\':
            escape = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c in '([':
            depth += 1
        elif c in ')]':
            depth -= 1

    return depth


def _switch(arg: str, current: bool) -> bool:
    arg = arg.lower()
    if arg in ("on", "true", "1"):
        return True
    if arg in ("off", "false", "0"):
        return False
    return not current


class RectusREPL:
    """Interactive REPL for rectus."""

    def __init__(self, config: Optional[EngineConfig] = None, history: bool = True):
        self.engine = Engine(config or DEFAULT_CONFIG)
        self.trace = False
        self.json_mode = False
        self.strategy = "exhaustive"
        self.running = True
        self.multi_line_buffer = ""
        self.history_file = Path.home() / ".rectus_history"

        if HAS_READLINE and history:
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = RectusCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    def set_precision(self, digits: int) -> None:
        self.engine = self.engine.with_config(self.engine.config.with_precision(digits))

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            before = len(self.engine)
            try:
                self.engine.load_file(Path(arg))
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"
            return f"Loaded {len(self.engine) - before} rules from {arg}"

        elif cmd == "rules":
            rules = self.engine.list_rules()
            if not rules:
                return "No rules loaded"
            return "\n".join(rules)

        elif cmd == "precision":
            if not arg:
                return f"Precision: {self.engine.config.precision} digits"
            try:
                self.set_precision(int(arg))
            except ValueError as e:
                return f"Error: {e}"
            return f"Precision set to {self.engine.config.precision} digits"

        elif cmd == "json":
            self.json_mode = _switch(arg, self.json_mode)
            return f"JSON mode {'enabled' if self.json_mode else 'disabled'}"

        elif cmd == "trace":
            self.trace = _switch(arg, self.trace)
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "strategy":
            if arg.lower() in STRATEGIES:
                self.strategy = arg.lower()
                return f"Strategy set to: {self.strategy}"
            return f"Unknown strategy. Options: {', '.join(STRATEGIES)}"

        elif cmd == "groups":
            groups = self.engine.groups()
            if not groups:
                return "No groups defined"
            disabled = self.engine.disabled_groups
            return "Groups: " + ", ".join(
                f"{g} (disabled)" if g in disabled else g for g in sorted(groups))

        elif cmd == "enable":
            if not arg:
                return "Usage: :enable GROUP"
            self.engine.enable_group(arg)
            return f"Enabled group: {arg}"

        elif cmd == "disable":
            if not arg:
                return "Usage: :disable GROUP"
            self.engine.disable_group(arg)
            return f"Disabled group: {arg}"

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        return """RECTUS REPL Commands:
  :help              Show this help
  :load FILE         Load rules from file (.rules or .json)
  :rules             List all loaded rules
  :precision N       Set the number of significant digits
  :json on|off       Read and print JSON instead of s-expressions
  :trace on|off      Toggle tracing
  :strategy NAME     Set strategy (exhaustive, once)
  :groups            Show all groups
  :enable GROUP      Enable a group
  :disable GROUP     Disable a group
  :quit              Exit

Syntax:
  @name: (pattern) => (skeleton)           Define a rule
  @name[priority]: (pattern) => (skeleton) Rule with priority
  @name: (pat) => (skel) when (cond)       Rule with guard
  (Add x (Multiply 2 x))                   Simplify an expression
  ["Add", "x", 0]                          Simplify JSON (with :json on)
"""

    def read_expression(self, text: str) -> Any:
        """Read one expression as JSON or as an s-expression."""
        if self.json_mode:
            return json.loads(text)
        return parse_sexpr(text)

    def render(self, result: Any) -> str:
        if self.json_mode:
            return json.dumps(result)
        return format_sexpr(result)

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        if "=>" in line:
            try:
                parsed = load_rules_from_dsl(line)
            except ValueError as e:
                return f"Error: {e}"
            if not parsed:
                return "Failed to parse rule"
            self.engine.add_parsed(parsed)
            return f"Added {len(parsed)} rule(s)"

        try:
            data = self.read_expression(line)
            if self.trace:
                result, trace = self.engine.simplify(data, trace=True, strategy=self.strategy)
                output = self.render(result)
                if trace.steps:
                    return f"{output}\n{trace.format('rules')}"
                return output
            return self.render(self.engine.simplify(data, strategy=self.strategy))
        except ValueError as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print("RECTUS - Rewriting Expressions to Canonical Terms Under Simplification")
        print("Type :help for help, :quit to exit")
        print("Multi-line input: expressions with unbalanced parens continue on next line")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "rectus> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += "\n" + line
                else:
                    self.multi_line_buffer = line

                paren_count = count_parens(self.multi_line_buffer)
                if paren_count > 0:
                    continue
                elif paren_count < 0:
                    print("Error: Unbalanced parentheses (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs rectus scripts, one-shot expressions and stdin."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.repl = RectusREPL(config, history=False)

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        current_group = None

        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if line.startswith(":"):
                result = self.repl.handle_command(line)
                if result and ("Error" in result or "Unknown" in result):
                    print(f"{path}:{lineno}: {result}", file=sys.stderr)
                    return 1
                continue

            if line.startswith("[") and line.endswith("]") and not self.repl.json_mode:
                current_group = line[1:-1].strip()
                continue

            if "=>" in line and current_group:
                line = f"[{current_group}]\n{line}"

            result = self.repl.process_line(line)
            if result and result.startswith("Error"):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            if result and not quiet and "=>" not in line:
                print(result)

        return 0

    def run_expression(self, text: str) -> int:
        result = self.repl.process_line(text)
        if result:
            print(result)
            if result.startswith("Error"):
                return 1
        return 0

    def run_stdin(self) -> int:
        """Read expressions from stdin, one per line, and simplify them."""
        for line in sys.stdin:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if result:
                print(result)
                if result.startswith("Error"):
                    return 1

        return 0


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="rectus",
        description="RECTUS - Rewriting Expressions to Canonical Terms Under Simplification",
        epilog="Examples:\n"
               "  rectus                                Start REPL\n"
               "  rectus script.rectus                  Run script\n"
               "  rectus -e '(Add x (Multiply 2 x))'    Simplify an s-expression\n"
               "  rectus -j '[\"Add\", \"x\", 0]'          Simplify JSON\n"
               "  echo '(Add x 0)' | rectus             Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument("script", nargs="?", help="Script file to run (.rectus)")
    parser.add_argument("-r", "--rules", action="append", default=[],
                        help="Load extra rules from file (can be specified multiple times)")
    parser.add_argument("-e", "--expr", help="Simplify a single s-expression")
    parser.add_argument("-j", "--json", dest="json_expr", nargs="?", const="",
                        help="Simplify a JSON expression (alone: read JSON from stdin)")
    parser.add_argument("-p", "--precision", type=int,
                        help=f"Significant digits (default: {DEFAULT_CONFIG.precision})")
    parser.add_argument("-t", "--trace", action="store_true", help="Enable tracing")
    parser.add_argument("-s", "--strategy", default="exhaustive", choices=list(STRATEGIES),
                        help="Rewriting strategy")
    parser.add_argument("-d", "--disable", action="append", default=[],
                        help="Disable a rule group (can be specified multiple times)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Quiet mode (suppress non-essential output)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log simplification (-v: info, -vv: every rule applied)")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(name)s %(levelname)s: %(message)s",
        )

    try:
        config = DEFAULT_CONFIG if args.precision is None else DEFAULT_CONFIG.with_precision(args.precision)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    runner = ScriptRunner(config)
    runner.repl.trace = args.trace
    runner.repl.strategy = args.strategy
    runner.repl.json_mode = args.json_expr is not None

    for group in args.disable:
        runner.repl.engine.disable_group(group)

    for rules_file in args.rules:
        try:
            runner.repl.engine.load_file(Path(rules_file))
        except (OSError, ValueError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            return 1
        if not args.quiet:
            print(f"Loaded rules from {rules_file}", file=sys.stderr)

    if args.script:
        return runner.run_script(Path(args.script), quiet=args.quiet)
    if args.expr:
        return runner.run_expression(args.expr)
    if args.json_expr:
        return runner.run_expression(args.json_expr)
    if not sys.stdin.isatty():
        return runner.run_stdin()

    runner.repl.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
