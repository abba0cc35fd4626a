"""
Test configuration for SEXP-Lang tests
"""

import sys
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import Interpreter


@pytest.fixture
def interpreter():
    """Provide a fresh interpreter for each test"""
    return Interpreter()


@pytest.fixture
def ext_dir():
    return project_root / "ext"
