"""YAML test file parser.

A test file is a single YAML document describing a `TestFile`: variables,
procedures, lifecycle steps and test cases. Steps are nested mappings of
`id`, `type`, `params` and `slots`.

Parsing failures are reported as `BlockSchemaError` with a snippet of the
offending fragment: YAML syntax errors carry the source position, validation
errors carry the smallest failing part of the document.
"""

from typing import TYPE_CHECKING

from pydantic import ValidationError
from yaml import SafeLoader, load
from yaml.error import MarkedYAMLError

from pytest_blocks.errors import BlockError, BlockSchemaError
from pytest_blocks.schema import TestFile

if TYPE_CHECKING:
    from io import TextIOBase
    from pathlib import Path

if TYPE_CHECKING:
    from yaml import BaseLoader


class DocumentParser:
    """Parser of YAML test files."""

    def __init__(self, loader: type['BaseLoader'] = SafeLoader) -> None:
        """Initialize the parser.

        Args:
            loader: PyYAML loader class used to read documents.
        """
        self.loader = loader

    def parse(self, content: 'TextIOBase | str', *,
              filename: str | None = None) -> TestFile:
        """Parse and validate a test file document.

        Args:
            content: YAML content as a string or file-like object.
            filename: Name of the source, used in error messages.

        Returns:
            The validated test file.

        Raises:
            BlockSchemaError: If YAML parsing or validation fails.
        """
        try:
            document = load(content, Loader=self.loader)

        except MarkedYAMLError as base:
            raise BlockSchemaError.from_yaml_error(base) from base

        except BlockError:
            raise

        except Exception as base:
            raise BlockSchemaError('Unexpected error') from base

        if document is None:
            document = {}

        if not isinstance(document, dict):
            raise BlockSchemaError('Test file must be a mapping')

        try:
            return TestFile.model_validate(document)

        except ValidationError as base:
            raise BlockSchemaError.from_pydantic_error(
                base,
                data=document,
                filename=filename,
            ) from base

    def parse_file(self, path: 'Path') -> TestFile:
        """Read and parse a test file from disk.

        Args:
            path: Path of the test file.

        Returns:
            The validated test file.

        Raises:
            BlockSchemaError: If YAML parsing or validation fails.
        """
        with path.open('rt', encoding='utf-8') as content:
            return self.parse(content, filename=f'{path}')
