"""
Ember Programming Language - Main Entry Point
A small dynamically typed scripting language with lexical closures
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import EmberParseError, EmberRuntimeError
from environment import env_depth
from interpreter import (
  DEFAULT_MAX_CALL_DEPTH,
  create_debug_interpreter,
  create_interpreter,
  user_bindings,
)
from parsing import KEYWORDS, create_debug_parser, create_parser, pretty_print_cst
from semantics import EmberSemanticsError, create_analyzer, create_debug_analyzer, pretty_print_ast
from stdlib import BUILTIN_FUNCTIONS, show


VERSION = "0.1.0"
HISTORY_FILE = "~/.ember_history"
PROMPT = "ember> "
CONTINUATION_PROMPT = "  ...> "


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='ember',
      description='Ember Programming Language - dynamically typed, lexically scoped',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.emb                 # Run an Ember script
  %(prog)s -i                         # Interactive mode
  %(prog)s --parse script.emb         # Parse and show CST
  %(prog)s --analyze script.emb       # Parse, analyze and show AST
  %(prog)s --debug script.emb         # Run with evaluation trace on stderr
  %(prog)s --max-depth 200 script.emb # Limit nested calls to 200
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Ember script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show CST (for debugging)'
  )

  parser.add_argument(
      '--analyze',
      action='store_true',
      help='Parse and analyze file, show AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--max-depth',
      type=positive_int,
      default=DEFAULT_MAX_CALL_DEPTH,
      metavar='N',
      help=f'Maximum nesting of function calls (default: {DEFAULT_MAX_CALL_DEPTH})'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'Ember v{VERSION}'
  )

  return parser


def positive_int(text: str) -> int:
  try:
    number = int(text)
  except ValueError:
    raise argparse.ArgumentTypeError(f"'{text}' is not an integer")
  if number < 1:
    raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
  return number


def read_source(script_path: str) -> str:
  """Read a script, exiting with a readable message when that fails"""
  try:
    with open(script_path, 'r', encoding='utf-8') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
    print("  Hint: Check the file path and make sure the file exists", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
    print("  Hint: Make sure you have read permissions for this file", file=sys.stderr)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}", file=sys.stderr)
    print("  Hint: Make sure the file is a text file with UTF-8 encoding", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  sys.exit(1)


def report_parse_error(e: EmberParseError, script_path: str) -> None:
  if e.report:
    print(e.report, file=sys.stderr, end="")
  else:
    print(f"Parse error in '{script_path}': {e}", file=sys.stderr)


def report_runtime_error(e: EmberRuntimeError, source: str, script_path: str) -> None:
  """Boxed report with error kind, location and the offending source line"""
  out = sys.stderr
  print(f"\n{'=' * 70}", file=out)
  print(f"Runtime Error in '{script_path}'", file=out)
  print(f"{'=' * 70}", file=out)
  print(f"\n{e.kind}: {e.message}", file=out)

  span = e.span
  if span:
    print(f"\nLocation: {span}", file=out)
    lines = source.split('\n')
    if 0 < span.start_line <= len(lines):
      source_line = lines[span.start_line - 1]
      end_col = span.end_col if span.end_line == span.start_line else len(source_line) + 1
      width = max(1, end_col - span.start_col)
      print("\nSource:", file=out)
      print(f"  {source_line}", file=out)
      print(f"  {' ' * (span.start_col - 1)}{'~' * width}", file=out)

  print(f"\n{'=' * 70}\n", file=out)


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse an Ember script file and show the CST"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()
  try:
    cst_nodes = parser.parse_string(source, script_path)
  except EmberParseError as e:
    report_parse_error(e, script_path)
    sys.exit(1)

  print(f"Parsed {len(cst_nodes)} top-level statements:")
  print("=" * 50)
  for i, node in enumerate(cst_nodes, 1):
    print(f"\nStatement {i}:")
    print(pretty_print_cst(node), end="")


def analyze_file(script_path: str, debug: bool = False) -> None:
  """Parse and analyze an Ember script file and show the AST"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  try:
    cst_nodes = parser.parse_string(source, script_path)
    ast_nodes = analyzer.analyze(cst_nodes)
  except EmberParseError as e:
    report_parse_error(e, script_path)
    sys.exit(1)
  except EmberSemanticsError as e:
    print(f"Semantic analysis error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)

  print(f"Analyzed {len(ast_nodes)} top-level statements:")
  print("=" * 50)
  for i, node in enumerate(ast_nodes, 1):
    print(f"\nStatement {i}:")
    print(pretty_print_ast(node), end="")


def run_script_file(script_path: str, debug: bool = False,
                    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> None:
  """Run an Ember script file with full interpretation"""
  source = read_source(script_path)
  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  interpreter = (create_debug_interpreter(max_call_depth=max_call_depth) if debug
                 else create_interpreter(max_call_depth=max_call_depth))

  try:
    cst_nodes = parser.parse_string(source, script_path)
    ast_nodes = analyzer.analyze(cst_nodes)
    result = interpreter.interpret(ast_nodes)
  except EmberParseError as e:
    report_parse_error(e, script_path)
    sys.exit(1)
  except EmberSemanticsError as e:
    print(f"Semantic analysis error in '{script_path}': {e}", file=sys.stderr)
    sys.exit(1)
  except EmberRuntimeError as e:
    report_runtime_error(e, source, script_path)
    sys.exit(1)
  except Exception as e:
    print(f"Unexpected error while executing '{script_path}': {e}", file=sys.stderr)
    if debug:
      import traceback
      traceback.print_exc()
    sys.exit(1)

  if debug:
    print(f"[run] final value: {show(result, True)}", file=sys.stderr)


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def setup_readline() -> None:
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, or unreadable history

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + sorted(BUILTIN_FUNCTIONS) + [
      # REPL commands
      ":parse", ":analyze", ":env", ":help", "exit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(_write_history, history_file)


def _write_history(history_file: str) -> None:
  try:
    readline.write_history_file(history_file)
  except OSError:
    pass


def needs_more_input(code: str) -> bool:
  """True while brackets opened in the buffered input are still unclosed"""
  depth = 0
  in_string = False
  escaped = False
  for char in code:
    if in_string:
      if escaped:
        escaped = False
      elif char == '\\':
        escaped = True
      elif char == '"':
        in_string = False
    elif char == '"':
      in_string = True
    elif char in "([{":
      depth += 1
    elif char in ")]}":
      depth -= 1
  return depth > 0


def show_help() -> None:
  print("REPL Commands:")
  print("  :parse <src>      - Show parsed CST")
  print("  :analyze <src>    - Show analyzed AST")
  print("  :env              - Show current bindings")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  let x = 5                  - Immutable binding")
  print("  let @mut n = 0; n = n + 1  - Mutable binding and assignment")
  print("  fun add(a, b) { return a + b }")
  print("  let inc = fun (x) { return x + 1 }")
  print("  for x in [1, 2, 3] { print(x) }")
  print("  while n < 10 { n = n + 1 }")


def show_env(interpreter) -> None:
  env = interpreter.global_env
  bindings = user_bindings(env)
  print(f"Current environment (frame depth {env_depth(env)}):")
  if not bindings:
    print("  (no user-defined bindings)")
    return
  for name, (value, mutable) in bindings.items():
    val_str = show(value, True)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    marker = "@mut " if mutable else ""
    print(f"  {marker}{name} = {val_str} : {value['type']}")


def run_repl_command(code: str, parser, analyzer) -> None:
  """Handle the :parse and :analyze commands"""
  command, _, text = code.partition(" ")
  try:
    cst_nodes = parser.parse_string(text, "<repl>")
    if command == ":parse":
      for node in cst_nodes:
        print(pretty_print_cst(node), end="")
    else:
      for node in analyzer.analyze(cst_nodes):
        print(pretty_print_ast(node), end="")
  except (EmberParseError, EmberSemanticsError) as e:
    print(f"Error: {e}")


def evaluate_repl_input(code: str, parser, analyzer, interpreter) -> None:
  """Run one complete input in the session environment, echoing expression results"""
  try:
    ast_nodes = analyzer.analyze(parser.parse_string(code, "<repl>"))
    result = interpreter.execute(ast_nodes)
    if ast_nodes and ast_nodes[-1]['type'] == "EXPR_STMT" and result['type'] != "Unit":
      print(f"=> {show(result, True)} : {result['type']}")
  except EmberParseError as e:
    print(f"Parse error: {e}")
  except EmberSemanticsError as e:
    print(f"Semantic error: {e}")
  except EmberRuntimeError as e:
    print("\nRuntime Error:")
    print(f"  {e.kind}: {e.message}")
    if e.span:
      print(f"  Location: {e.span}")
    print()


def run_interactive_mode(debug: bool = False,
                         max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> None:
  """Run Ember in interactive mode; bindings persist across inputs"""
  print(f"Ember v{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_debug_parser() if debug else create_parser()
  analyzer = create_debug_analyzer() if debug else create_analyzer()
  interpreter = (create_debug_interpreter(max_call_depth=max_call_depth) if debug
                 else create_interpreter(max_call_depth=max_call_depth))

  buffer: List[str] = []
  while True:
    try:
      line = input(CONTINUATION_PROMPT if buffer else PROMPT)
    except KeyboardInterrupt:
      if buffer:
        buffer = []
        print()
        continue
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break

    buffer.append(line)
    code = "\n".join(buffer)
    if needs_more_input(code):
      continue
    buffer = []

    stripped = code.strip()
    if not stripped:
      continue
    if stripped == "exit":
      break
    if stripped == ":help":
      show_help()
    elif stripped == ":env":
      show_env(interpreter)
    elif stripped.startswith((":parse ", ":analyze ")):
      run_repl_command(stripped, parser, analyzer)
    elif stripped.startswith(":"):
      print(f"Unknown command '{stripped.split()[0]}' (try :help)")
    else:
      try:
        evaluate_repl_input(code, parser, analyzer, interpreter)
      except Exception as e:
        print(f"Unexpected error: {e}")
        if debug:
          import traceback
          traceback.print_exc()


def show_language_info() -> None:
  """Show Ember language information"""
  print("Ember Programming Language")
  print("=" * 50)
  print("A small scripting language with:")
  print("• Immutable bindings by default, 'let @mut' for mutable ones")
  print("• First-class functions and lexical closures")
  print("• Int, Float, Bool, Str and Array values")
  print("• if / while / for-in control flow")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Ember"""
  if argv is None:
    argv = sys.argv[1:]
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if not argv:
    # No arguments - show info and start interactive mode
    show_language_info()
    run_interactive_mode()
    return

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist", file=sys.stderr)
      sys.exit(1)

    if args.parse:
      parse_file(args.script, debug=args.debug)
    elif args.analyze:
      analyze_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug, max_call_depth=args.max_depth)

  elif args.interactive:
    run_interactive_mode(debug=args.debug, max_call_depth=args.max_depth)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
