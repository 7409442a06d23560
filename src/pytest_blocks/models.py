"""Base Pydantic models for block runtime elements.

This module defines the foundational model classes used by step trees,
block descriptors, procedure definitions, results and test files. Models
are immutable and strictly validated so that a loaded block graph is
deterministic and can be shared between concurrent test runs.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all block runtime elements.

    Design principles enforced by this model:
        - Immutability: elements can not be modified after creation.
          A step tree loaded once may be evaluated by many contexts.
        - Strict schema validation: unknown or extra fields are rejected
          to surface typos in hand-written test files early.

    All declarative models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class RecordModel(BaseModel):
    """Base model for records produced during execution.

    Results are assembled incrementally by the interpreter and the runner,
    so unlike `SchemaModel` they are mutable. Extra fields are still
    rejected.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra='forbid',
    )


class DescribedMixin(SchemaModel):
    """Mixin providing element self-documentation.

    The fields defined in this model do not affect execution semantics
    and are used purely for documentation and reporting.
    """

    name: str | None = Field(
        default=None,
        title='Name',
        description='Short human-readable name of the element.',
    )

    description: str | None = Field(
        default=None,
        title='Description',
        description='Detailed human-readable description of the element.',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Design principles enforced by this model:
        - Immutability: resolved settings can not be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored, so
          the surrounding environment may contain unrelated variables.

    All runtime settings models must inherit from this class.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
