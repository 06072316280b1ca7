"""Pydantic v2 models for pattern configuration and the derived context.

``PatternConfig`` is the input handed over by the requirements interview.
Everything else describes the canonical variable tree a pattern generator
produces; it is dumped with camelCase aliases because that is how templates
refer to it (``{{projectNameKebab}}``, ``{{#if storageNeeded}}``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class PatternConfig(BaseModel):
    """An architecture decision: which pattern to generate and its parameters."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    pattern_name: str = Field(..., alias="patternName", description="Pattern identifier")
    decisions: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque decision data from the requirements interview",
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Field types understood by the Amplify data schema (``a.<type>()``)."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    EMAIL = "email"
    URL = "url"
    JSON = "json"
    ID = "id"


class RelationshipKind(str, Enum):
    BELONGS_TO = "belongsTo"
    HAS_MANY = "hasMany"


class ComponentKind(str, Enum):
    """What a scaffolded UI component renders."""
    LIST = "list"
    FORM = "form"
    DETAIL = "detail"
    FEED = "feed"
    CHART = "chart"
    EDITOR = "editor"
    CART = "cart"
    LAYOUT = "layout"
    BUTTON = "button"


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


class Descriptor(BaseModel):
    """Base for context descriptors: camelCase aliases, enums dumped as values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_value(self) -> dict[str, Any]:
        """Plain dict using template-facing (camelCase) keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ModelField(Descriptor):
    """A single field on a data model."""
    name: str
    type: FieldType = FieldType.STRING
    ts_type: str = "string"
    required: bool = True


class Relationship(Descriptor):
    """A relationship between two data models.

    ``field`` is the foreign-key field: on ``belongsTo`` it lives on the
    owning model, on ``hasMany`` it lives on the target model.
    """
    kind: RelationshipKind
    name: str
    target: str
    field: str


class DataModel(Descriptor):
    """A data model to scaffold in the backend schema."""
    name: str
    name_plural: str
    name_camel: str
    name_kebab: str
    fields: list[ModelField] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    authorization: list[str] = Field(
        default_factory=list,
        description="Authorization rule expressions, e.g. \"allow.owner()\"",
    )


class AuthStrategy(Descriptor):
    """How end users sign in."""
    strategy: str = "email"
    login_with_email: bool = True
    social_providers: list[str] = Field(default_factory=list)
    mfa: bool = False
    groups: list[str] = Field(default_factory=list)


class StorageAccessPath(Descriptor):
    path: str
    access: list[str] = Field(default_factory=list)


class StorageDescriptor(Descriptor):
    """File storage bucket, if the project needs one."""
    needed: bool = False
    bucket_name: str = ""
    paths: list[StorageAccessPath] = Field(default_factory=list)


class UIComponent(Descriptor):
    """A UI component to scaffold in the frontend."""
    name: str
    kind: ComponentKind
    model: Optional[str] = None
    file_name: str = ""


class ProjectContext(Descriptor):
    """The full variable tree one generator produces.

    Dumped through ``to_value()`` and frozen into the render ``Context``.
    """

    pattern: str
    project_name: str
    project_name_kebab: str
    project_name_snake: str
    project_name_pascal: str
    project_name_camel: str
    description: str = ""
    models: list[DataModel] = Field(default_factory=list)
    auth: AuthStrategy = Field(default_factory=AuthStrategy)
    storage: StorageDescriptor = Field(default_factory=StorageDescriptor)
    components: list[UIComponent] = Field(default_factory=list)
    features: list[str] = Field(
        default_factory=list, description="Human-readable feature summary lines"
    )

    # Feature flags
    social_auth: bool = False
    real_time_subscriptions: bool = False
    storage_needed: bool = False
    payments: bool = False
    payment_provider: Optional[str] = None
    rich_text: bool = False
    charts: bool = False
    search: bool = False
    mfa: bool = False

    warnings: list[str] = Field(default_factory=list, alias="_warnings")
