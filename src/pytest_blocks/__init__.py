"""Pytest plugin and execution engine for block-based test graphs.

The `pytest_blocks` package evaluates test cases written as trees of
typed blocks (steps) and integrates them with pytest.

Key features:
- YAML test files collected as pytest test items, one per test case and
  data row;
- an async step interpreter with branches, loops, try/catch and
  parameterized procedures;
- hard and soft assertions with per-test aggregation;
- block plugins discovered via entry points.

Block graphs are data: the engine only interprets them, it never compiles
or evaluates code found in them.
"""
