"""
Quill Programming Language - Main Entry Point
Drives source text through parsing, semantic analysis and optimization and
shows the resulting program graph
"""

import sys
import argparse
from pathlib import Path
from typing import Dict
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from core import Program
from parsing import create_parser
from semantics import create_analyzer
from optimizer import optimize
from error_handling import QuillParseError, SemanticError, format_error_report
from stdlib import describe_standard_library, is_standard_entity
from utilities import stringify


VERSION = "0.3.0"

OUTPUT_TYPES = ("parsed", "analyzed", "optimized")


# ============================================================================
# PIPELINE
# ============================================================================

def compile_source(source: str, output_type: str = "optimized",
                   filename: str = "<input>", debug: bool = False) -> Program:
  """Run the pipeline up to the requested stage and return that stage's tree"""
  if output_type not in OUTPUT_TYPES:
    raise ValueError("Unknown output type")

  tree = create_parser(debug).parse_string(source, filename)
  if output_type == "parsed":
    return tree
  analyzed = create_analyzer(debug).analyze(tree)
  if output_type == "analyzed":
    return analyzed
  return optimize(analyzed)


# ============================================================================
# COMMAND LINE
# ============================================================================

def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='quill',
      description='Quill - semantic analysis and optimization of Quill programs',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.ql              # Show the optimized program graph
  %(prog)s --parse script.ql      # Show the raw tree from the parser
  %(prog)s --analyze script.ql    # Show the resolved (unoptimized) graph
  %(prog)s --debug script.ql      # Trace every stage
  %(prog)s -i                     # Interactive mode
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Quill source file to compile'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  stage = parser.add_mutually_exclusive_group()
  stage.add_argument(
      '--parse',
      action='store_true',
      help='Stop after parsing'
  )
  stage.add_argument(
      '--analyze',
      action='store_true',
      help='Stop after semantic analysis'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'Quill v{VERSION}'
  )

  return parser


def output_type_from_args(args: argparse.Namespace) -> str:
  if args.parse:
    return "parsed"
  if args.analyze:
    return "analyzed"
  return "optimized"


def compile_file(script_path: str, output_type: str = "optimized", debug: bool = False) -> int:
  """Compile a Quill file, print the graph of the requested stage, return exit status"""
  source = ""
  try:
    source = Path(script_path).read_text(encoding='utf-8')
    if debug:
      print(f"Compiling {script_path} to the {output_type} stage...")
    tree = compile_source(source, output_type, script_path, debug)
    print(stringify(tree))
    return 0

  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'")
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{script_path}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
  except QuillParseError as e:
    print(f"Parse error in '{script_path}':")
    print(format_error_report(e, source))
  except SemanticError as e:
    print(f"In '{script_path}':")
    print(format_error_report(e, source))
  except Exception as e:
    print(f"Unexpected error while processing '{script_path}': {e}")
    if debug:
      import traceback
      traceback.print_exc()
  return 1


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser("~/.quill_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First session, no history yet

  readline.set_history_length(1000)

  completions = [
      "let", "function", "while", "print", "true", "false",
      *describe_standard_library().keys(),
      ":parse", ":analyze", ":env", ":help", "exit"
  ]

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def show_environment(env: Dict) -> None:
  """Print the user bindings of a session environment, innermost first"""
  user_bindings = {}
  frame = env
  while frame:
    for name, entity in frame['bindings'].items():
      if name not in user_bindings and not is_standard_entity(entity):
        user_bindings[name] = entity
    frame = frame['parent']

  if not user_bindings:
    print("  (no user-defined bindings)")
    return
  for name, entity in user_bindings.items():
    print(f"  {name}: {entity}")


def run_interactive_mode(debug: bool = False) -> None:
  """Compile statements one input at a time, keeping declarations between inputs"""
  print(f"Quill v{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  parser = create_parser(debug)
  analyzer = create_analyzer(debug)

  while True:
    try:
      code = input("quill> ").strip()
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if code == "exit":
      break
    if not code:
      continue

    if code == ":help":
      print("REPL Commands:")
      print("  :parse <statements>    - Show the raw tree")
      print("  :analyze <statements>  - Show the resolved graph without optimizing")
      print("  :env                   - Show session bindings")
      print("  :help                  - Show this help")
      print("  exit                   - Exit REPL")
      continue

    if code == ":env":
      print("Current environment:")
      show_environment(analyzer.global_env)
      continue

    output_type = "optimized"
    if code.startswith(":parse "):
      output_type, code = "parsed", code[len(":parse "):]
    elif code.startswith(":analyze "):
      output_type, code = "analyzed", code[len(":analyze "):]

    try:
      tree = parser.parse_string(code, "<stdin>")
      if output_type != "parsed":
        tree = analyzer.analyze_incremental(tree)
        if output_type == "optimized":
          tree = optimize(tree)
      print(stringify(tree))
    except (QuillParseError, SemanticError) as e:
      print(format_error_report(e, code))
    except Exception as e:
      print(f"Unexpected error: {e}")
      if debug:
        import traceback
        traceback.print_exc()


def show_language_info() -> None:
  """Show Quill language information"""
  print("Quill Programming Language")
  print("=" * 50)
  print("An expression-oriented imperative language with:")
  print("• let declarations, assignment, while and print")
  print("• single-expression functions with recursion")
  print("• numbers, booleans and conditional expressions")
  print()
  print("Standard library:")
  for name, signature in describe_standard_library().items():
    print(f"  {name}: {signature}")
  print()


def main() -> None:
  """Main entry point for Quill"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  if args.script:
    sys.exit(compile_file(args.script, output_type_from_args(args), debug=args.debug))
  elif args.interactive:
    run_interactive_mode(debug=args.debug)
  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
