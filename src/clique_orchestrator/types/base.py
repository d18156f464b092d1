"""Reusable base models for the orchestrator."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that converts field names to camel case when serializing.

    For example, the field name `chain_id` in a Python model will be
    represented as `chainId` when it is serialized to JSON.

    Genesis documents, registry records and network configs all use the
    camelCase convention on the wire.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class FrozenModel(CamelModel):
    """
    An immutable model for user-supplied input and derived documents.

    Input arrives as YAML or JSON, so values are coerced (strings to enums,
    strings to paths). Unknown keys are rejected.
    """

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
    }


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }
