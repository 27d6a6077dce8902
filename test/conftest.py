"""
Test configuration for Ember tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from semantics import create_analyzer
from interpreter import create_interpreter


@pytest.fixture
def parser():
  return create_parser()


@pytest.fixture
def analyzer():
  return create_analyzer()


@pytest.fixture
def run(parser, analyzer):
  """Run Ember source; returns (printed output, final value)"""
  def run_source(source, max_call_depth=None):
    output = io.StringIO()
    kwargs = {'output': output}
    if max_call_depth is not None:
      kwargs['max_call_depth'] = max_call_depth
    interpreter = create_interpreter(**kwargs)
    ast_nodes = analyzer.analyze(parser.parse_string(source))
    value = interpreter.interpret(ast_nodes)
    return output.getvalue(), value
  return run_source


@pytest.fixture
def bindings(parser, analyzer):
  """Run Ember source; returns its top-level bindings as Python data"""
  def run_source(source):
    interpreter = create_interpreter(output=io.StringIO())
    return interpreter.interpret_program(analyzer.analyze(parser.parse_string(source)))
  return run_source
