"""JSON Schema of the test file format."""

from functools import cache
from json import dumps
from typing import TYPE_CHECKING

from pydantic.json_schema import GenerateJsonSchema, JsonSchemaValue

from pytest_blocks.schema import TestFile

if TYPE_CHECKING:
    from pydantic_core import core_schema as core


class SchemaGenerator(GenerateJsonSchema):
    """JSON Schema generator for test file documents.

    Opaque runtime values (collaborator handles, executors) have no static
    shape and are represented as unconstrained values.
    """

    @classmethod
    @cache
    def make_schema(cls, indent: int | str | None = 4) -> str:
        """Generate the JSON Schema of test file documents.

        Args:
            indent: Indentation level used for JSON formatting.

        Returns:
            Serialized JSON Schema string.
        """
        schema = {
            **TestFile.model_json_schema(schema_generator=cls),
            'title': 'pytest-blocks',
            'description': 'JSON Schema for pytest-blocks test files',
            '$schema': cls.schema_dialect,
        }

        return dumps(
            schema,
            ensure_ascii=False,
            sort_keys=True,
            indent=indent,
        )

    def callable_schema(self, schema: 'core.CallableSchema') -> JsonSchemaValue:  # noqa: ARG002
        """Represent callables as unconstrained runtime values."""
        return {'description': 'Runtime value'}

    def is_instance_schema(self, schema: 'core.IsInstanceSchema') -> JsonSchemaValue:  # noqa: ARG002
        """Represent arbitrary runtime objects as unconstrained values."""
        return {'description': 'Runtime value'}
