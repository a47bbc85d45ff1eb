"""
Test configuration for Quill tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser, parse
from semantics import resolve


@pytest.fixture
def parser():
  """Provide a fresh parser for each test"""
  return create_parser()


@pytest.fixture
def analyzed():
  """Parse and resolve source text"""
  return lambda source: resolve(parse(source))


@pytest.fixture
def examples_dir():
  """Directory of sample Quill programs"""
  return project_root / "examples"
