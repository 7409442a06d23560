"""Test suite for the pytest-blocks package.

This package contains unit and integration tests validating test file
parsing, step interpretation, plugin loading, pytest integration and the
command-line utilities.
"""
