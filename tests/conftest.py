"""Test fixtures for the Silk runtime test suite."""
import pytest
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from silk.runtime.executor import Executor, ExecutionConfig


@pytest.fixture
def executor() -> Executor:
    """Fresh execution session with default configuration."""
    return Executor()


@pytest.fixture
def small_executor() -> Executor:
    """Session limited to two parallel workers and a tiny frame pool."""
    return Executor(ExecutionConfig(max_workers=2, frame_pool_size=2))


@pytest.fixture
def collected(executor: Executor) -> List[Any]:
    """Register a thread-safe ``collect`` builtin and return its sink."""
    values: List[Any] = []
    lock = threading.Lock()

    def collect(args):
        with lock:
            values.extend(args)
        return None

    executor.register_builtin("collect", collect)
    return values


@pytest.fixture
def sample_program_obj() -> Dict[str, Any]:
    """Dict form of ``x = 5; y = 3; z = (x + y) * 2``."""
    return {
        "kind": "Program",
        "body": [
            {"kind": "Assignment", "target": {"kind": "Variable", "name": "x"},
             "value": {"kind": "Number", "value": 5}},
            {"kind": "Assignment", "target": {"kind": "Variable", "name": "y"},
             "value": {"kind": "Number", "value": 3}},
            {"kind": "Assignment", "target": {"kind": "Variable", "name": "z"},
             "value": {
                 "kind": "BinaryExpr",
                 "op": "*",
                 "left": {
                     "kind": "BinaryExpr",
                     "op": "+",
                     "left": {"kind": "Variable", "name": "x"},
                     "right": {"kind": "Variable", "name": "y"},
                 },
                 "right": {"kind": "Number", "value": 2},
             }},
        ],
    }
