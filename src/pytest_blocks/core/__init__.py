"""Block engine runtime.

It provides:
- block and procedure registries;
- the step interpreter evaluating step trees and control signals;
- execution environments owning registries, plugins and hooks;
- the test file runner and the YAML test file parser.

The primary public entry points are `ExecutionEnvironment.create`,
`TestRunner` and `DocumentParser`.
"""

from .environment import ExecutionEnvironment
from .interpreter import StepInterpreter
from .parser import DocumentParser
from .procedures import ProcedureRegistry, procedure_block, resolve_call_arguments
from .registry import BlockRegistry
from .runner import FileSession, TestRunner

__all__ = (
    'BlockRegistry',
    'DocumentParser',
    'ExecutionEnvironment',
    'FileSession',
    'ProcedureRegistry',
    'StepInterpreter',
    'TestRunner',
    'procedure_block',
    'resolve_call_arguments',
)
