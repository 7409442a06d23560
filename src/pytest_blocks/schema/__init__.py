"""Declarative models of the block runtime.

Defines immutable Pydantic models describing step trees, block descriptors,
control signals, procedures and test files, plus the mutable result records
produced by an execution.
"""

from .blocks import BlockDescriptor, BlockExecutor, BlockInput, BlockOutput
from .cases import DataRow, TestCase, TestFile, VariableDefinition
from .procedures import ProcedureDefinition, ProcedureParam
from .results import ErrorInfo, SoftAssertionError, Status, StepResult, TestResult
from .signals import (
    Branch,
    CollectionLoop,
    CountedLoop,
    InlineExpand,
    ProcedureCall,
    ProcedureDefine,
    ProcedureReturn,
    Signal,
    TryCatch,
)
from .steps import StepNode

__all__ = (
    'BlockDescriptor',
    'BlockExecutor',
    'BlockInput',
    'BlockOutput',
    'Branch',
    'CollectionLoop',
    'CountedLoop',
    'DataRow',
    'ErrorInfo',
    'InlineExpand',
    'ProcedureCall',
    'ProcedureDefine',
    'ProcedureDefinition',
    'ProcedureParam',
    'ProcedureReturn',
    'Signal',
    'SoftAssertionError',
    'Status',
    'StepNode',
    'StepResult',
    'TestCase',
    'TestFile',
    'TestResult',
    'TryCatch',
    'VariableDefinition',
)
