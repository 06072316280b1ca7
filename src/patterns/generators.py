"""Pattern generators: pure functions from decision data to a ProjectContext.

Each architecture pattern (social platform, e-commerce, content management,
dashboard analytics, simple CRUD) derives its data models, auth strategy,
storage, UI components and feature flags from the ``decisions`` map.
Decisions are untrusted external data: every value is type-checked where it
is read and anything malformed falls back to the pattern's default.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Optional

from src.engine.helpers import camel_case, kebab_case, pascal_case, pluralize, snake_case, split_words

from .models import (
    AuthStrategy,
    ComponentKind,
    DataModel,
    FieldType,
    ModelField,
    ProjectContext,
    Relationship,
    RelationshipKind,
    StorageAccessPath,
    StorageDescriptor,
    UIComponent,
)

Decisions = Mapping[str, Any]
Generator = Callable[[Decisions], ProjectContext]

DEFAULT_PROJECT_NAME = "untitled-project"


# ---------------------------------------------------------------------------
# Field type normalisation
# ---------------------------------------------------------------------------

_FIELD_TYPE_MAP: dict[str, FieldType] = {
    "str": FieldType.STRING,
    "string": FieldType.STRING,
    "text": FieldType.STRING,
    "int": FieldType.INTEGER,
    "integer": FieldType.INTEGER,
    "float": FieldType.FLOAT,
    "number": FieldType.FLOAT,
    "decimal": FieldType.FLOAT,
    "bool": FieldType.BOOLEAN,
    "boolean": FieldType.BOOLEAN,
    "date": FieldType.DATETIME,
    "datetime": FieldType.DATETIME,
    "timestamp": FieldType.DATETIME,
    "email": FieldType.EMAIL,
    "url": FieldType.URL,
    "json": FieldType.JSON,
    "object": FieldType.JSON,
    "dict": FieldType.JSON,
    "id": FieldType.ID,
}

_TS_TYPE_MAP: dict[FieldType, str] = {
    FieldType.STRING: "string",
    FieldType.INTEGER: "number",
    FieldType.FLOAT: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.DATETIME: "string",
    FieldType.EMAIL: "string",
    FieldType.URL: "string",
    FieldType.JSON: "Record<string, unknown>",
    FieldType.ID: "string",
}

# Authorization rule expressions used by the data schema template.
OWNER = "allow.owner()"
AUTHENTICATED_READ = "allow.authenticated().to(['read'])"
GUEST_READ = "allow.guest().to(['read'])"


def _group(name: str) -> str:
    return f"allow.group('{name}')"


# ---------------------------------------------------------------------------
# Decision accessors
# ---------------------------------------------------------------------------


def _flag(decisions: Decisions, key: str, default: bool) -> bool:
    value = decisions.get(key)
    return value if isinstance(value, bool) else default


def _text(decisions: Decisions, key: str, default: str = "") -> str:
    value = decisions.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else default


def _string_list(decisions: Decisions, key: str, default: list[str]) -> list[str]:
    value = decisions.get(key)
    if not isinstance(value, list):
        return list(default)
    return [item.strip().lower() for item in value if isinstance(item, str) and item.strip()]


# ---------------------------------------------------------------------------
# Descriptor builders
# ---------------------------------------------------------------------------


def make_field(name: str, type_name: str = "string", required: bool = True) -> ModelField:
    """Build a ``ModelField``, normalising *type_name* (unknown types become strings)."""
    field_type = _FIELD_TYPE_MAP.get(type_name.strip().lower(), FieldType.STRING)
    return ModelField(
        name=camel_case(name),
        type=field_type,
        ts_type=_TS_TYPE_MAP[field_type],
        required=required,
    )


def make_model(
    name: str,
    fields: list[ModelField],
    *,
    belongs_to: tuple[str, ...] = (),
    has_many: tuple[str, ...] = (),
    authorization: tuple[str, ...] = (OWNER,),
) -> DataModel:
    """Build a ``DataModel`` with its name variants and relationships.

    Every ``belongs_to`` target adds a ``<target>Id`` foreign-key field.
    """
    model_name = pascal_case(name)
    all_fields = list(fields)
    relationships: list[Relationship] = []
    for target in belongs_to:
        target_name = pascal_case(target)
        fk = camel_case(target_name) + "Id"
        if fk not in {f.name for f in all_fields}:
            all_fields.append(make_field(fk, "id"))
        relationships.append(Relationship(
            kind=RelationshipKind.BELONGS_TO,
            name=camel_case(target_name),
            target=target_name,
            field=fk,
        ))
    for target in has_many:
        target_name = pascal_case(target)
        relationships.append(Relationship(
            kind=RelationshipKind.HAS_MANY,
            name=camel_case(pluralize(target_name)),
            target=target_name,
            field=camel_case(model_name) + "Id",
        ))
    return DataModel(
        name=model_name,
        name_plural=pluralize(model_name),
        name_camel=camel_case(model_name),
        name_kebab=kebab_case(model_name),
        fields=all_fields,
        relationships=relationships,
        authorization=list(authorization),
    )


def link_relationships(models: list[DataModel]) -> list[DataModel]:
    """Make every relationship two-sided and drop the ones with unknown targets.

    A ``hasMany`` gets its inverse ``belongsTo`` (plus foreign-key field) on
    the target model, and a ``belongsTo`` gets its inverse ``hasMany``.
    Returns new model instances; the input list is left untouched.
    """
    by_name = {m.name: m.model_copy(deep=True) for m in models}
    for model in by_name.values():
        model.relationships = [r for r in model.relationships if r.target in by_name]

    for model in list(by_name.values()):
        for rel in list(model.relationships):
            target = by_name[rel.target]
            if rel.kind == RelationshipKind.HAS_MANY:
                inverse = RelationshipKind.BELONGS_TO
                name = model.name_camel
            else:
                inverse = RelationshipKind.HAS_MANY
                name = camel_case(model.name_plural)
            if any(r.kind == inverse and r.target == model.name for r in target.relationships):
                continue
            if inverse == RelationshipKind.BELONGS_TO and rel.field not in {
                f.name for f in target.fields
            }:
                target.fields.append(make_field(rel.field, "id"))
            target.relationships.append(Relationship(
                kind=inverse, name=name, target=model.name, field=rel.field,
            ))
    return list(by_name.values())


def component(name: str, kind: ComponentKind, model: Optional[str] = None) -> UIComponent:
    pascal = pascal_case(name)
    return UIComponent(name=pascal, kind=kind, model=model, file_name=f"{pascal}.tsx")


def crud_components(models: list[DataModel]) -> list[UIComponent]:
    """List, form and detail components for every model."""
    components: list[UIComponent] = []
    for model in models:
        components.append(component(f"{model.name}List", ComponentKind.LIST, model.name))
        components.append(component(f"{model.name}Form", ComponentKind.FORM, model.name))
        components.append(component(f"{model.name}Detail", ComponentKind.DETAIL, model.name))
    return components


def parse_entities(decisions: Decisions) -> Optional[list[DataModel]]:
    """Read user-specified entities from ``decisions["entities"]``.

    Each entity is ``{name, fields: [{name, type, required}], belongsTo,
    hasMany}``.  Malformed entries are skipped; returns ``None`` when no
    usable entity remains so the caller keeps its pattern defaults.
    """
    raw = decisions.get("entities")
    if not isinstance(raw, list):
        return None

    models: list[DataModel] = []
    seen: set[str] = set()
    for entity in raw:
        if not isinstance(entity, Mapping):
            continue
        name = entity.get("name")
        if not isinstance(name, str) or not split_words(name):
            continue
        if pascal_case(name) in seen:
            continue
        seen.add(pascal_case(name))

        raw_fields = entity.get("fields")
        if not isinstance(raw_fields, list):
            raw_fields = []
        fields: list[ModelField] = []
        for raw_field in raw_fields:
            if isinstance(raw_field, str) and split_words(raw_field):
                fields.append(make_field(raw_field))
            elif isinstance(raw_field, Mapping) and isinstance(raw_field.get("name"), str):
                if not split_words(raw_field["name"]):
                    continue
                type_name = raw_field.get("type")
                required = raw_field.get("required")
                fields.append(make_field(
                    raw_field["name"],
                    type_name if isinstance(type_name, str) else "string",
                    required if isinstance(required, bool) else True,
                ))

        models.append(make_model(
            name,
            fields,
            belongs_to=_names(entity.get("belongsTo")),
            has_many=_names(entity.get("hasMany")),
        ))
    return link_relationships(models) if models else None


def _names(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str) and split_words(v))


# ---------------------------------------------------------------------------
# Shared assembly
# ---------------------------------------------------------------------------


def project_names(decisions: Decisions) -> dict[str, str]:
    """Compute every case variant of the project name exactly once."""
    name = _text(decisions, "projectName")
    if not split_words(name):
        name = DEFAULT_PROJECT_NAME
    return {
        "project_name": name,
        "project_name_kebab": kebab_case(name),
        "project_name_snake": snake_case(name),
        "project_name_pascal": pascal_case(name),
        "project_name_camel": camel_case(name),
    }


def auth_strategy(decisions: Decisions, *, social_default: list[str], groups_default: list[str]) -> AuthStrategy:
    providers = _string_list(decisions, "socialProviders", social_default)
    return AuthStrategy(
        strategy="email+social" if providers else "email",
        login_with_email=True,
        social_providers=providers,
        mfa=_flag(decisions, "mfa", False),
        groups=_string_list(decisions, "userGroups", groups_default),
    )


def storage(names: dict[str, str], needed: bool, paths: list[StorageAccessPath]) -> StorageDescriptor:
    if not needed:
        return StorageDescriptor()
    return StorageDescriptor(
        needed=True,
        bucket_name=f"{names['project_name_camel']}Files",
        paths=paths,
    )


def _finish(
    pattern: str,
    decisions: Decisions,
    *,
    models: list[DataModel],
    auth: AuthStrategy,
    storage_descriptor: StorageDescriptor,
    components: list[UIComponent],
    names: dict[str, str],
    **flags: Any,
) -> ProjectContext:
    """Combine the pieces into a ``ProjectContext`` with a feature summary."""
    features = ["Email sign-in"]
    features.extend(f"{provider.capitalize()} sign-in" for provider in auth.social_providers)
    if auth.mfa:
        features.append("Multi-factor authentication")
    if flags.get("real_time_subscriptions"):
        features.append("Real-time subscriptions")
    if storage_descriptor.needed:
        features.append("File storage")
    if flags.get("payments"):
        features.append(f"Payments ({flags.get('payment_provider')})")
    if flags.get("rich_text"):
        features.append("Rich text editing")
    if flags.get("charts"):
        features.append("Charts and visualisations")
    if flags.get("search"):
        features.append("Full-text search")

    return ProjectContext(
        pattern=pattern,
        description=_text(decisions, "description"),
        models=models,
        auth=auth,
        storage=storage_descriptor,
        components=components,
        features=features,
        social_auth=bool(auth.social_providers),
        storage_needed=storage_descriptor.needed,
        mfa=auth.mfa,
        **names,
        **flags,
    )


# ---------------------------------------------------------------------------
# Pattern generators
# ---------------------------------------------------------------------------


def social_platform(decisions: Decisions) -> ProjectContext:
    """User profiles, posts, comments, likes and follows with a live feed."""
    names = project_names(decisions)
    models = parse_entities(decisions) or link_relationships([
        make_model("Profile", [
            make_field("displayName"),
            make_field("bio", required=False),
            make_field("avatarUrl", "url", required=False),
        ], has_many=("Post", "Comment"), authorization=(OWNER, AUTHENTICATED_READ)),
        make_model("Post", [
            make_field("content"),
            make_field("mediaUrl", "url", required=False),
        ], belongs_to=("Profile",), has_many=("Comment", "Like"),
            authorization=(OWNER, AUTHENTICATED_READ)),
        make_model("Comment", [make_field("content")], belongs_to=("Post", "Profile"),
                   authorization=(OWNER, AUTHENTICATED_READ)),
        make_model("Like", [], belongs_to=("Post",), authorization=(OWNER, AUTHENTICATED_READ)),
        make_model("Follow", [
            make_field("followerId", "id"),
            make_field("followingId", "id"),
        ], authorization=(OWNER, AUTHENTICATED_READ)),
    ])
    media = _flag(decisions, "mediaUploads", True)
    return _finish(
        "social_platform",
        decisions,
        models=models,
        auth=auth_strategy(decisions, social_default=["google"], groups_default=[]),
        storage_descriptor=storage(names, media, [
            StorageAccessPath(path="media/{entity_id}/*", access=[
                "allow.entity('identity').to(['read', 'write', 'delete'])",
                "allow.authenticated.to(['read'])",
            ]),
        ]),
        components=[
            component("Feed", ComponentKind.FEED, "Post"),
            component("PostComposer", ComponentKind.FORM, "Post"),
            component("ProfileCard", ComponentKind.DETAIL, "Profile"),
            component("CommentList", ComponentKind.LIST, "Comment"),
            component("FollowButton", ComponentKind.BUTTON, "Follow"),
        ],
        names=names,
        real_time_subscriptions=_flag(decisions, "realTime", True),
        search=_flag(decisions, "search", False),
    )


def e_commerce(decisions: Decisions) -> ProjectContext:
    """Catalogue, cart, orders and payment processing."""
    names = project_names(decisions)
    catalogue_rules = (GUEST_READ, AUTHENTICATED_READ, _group("admin"))
    models = parse_entities(decisions) or link_relationships([
        make_model("Category", [make_field("name")], has_many=("Product",),
                   authorization=catalogue_rules),
        make_model("Product", [
            make_field("name"),
            make_field("description", required=False),
            make_field("price", "float"),
            make_field("stock", "integer"),
            make_field("imageUrl", "url", required=False),
        ], belongs_to=("Category",), authorization=catalogue_rules),
        make_model("CartItem", [make_field("quantity", "integer")], belongs_to=("Product",)),
        make_model("Order", [
            make_field("status"),
            make_field("total", "float"),
        ], has_many=("OrderItem",), authorization=(OWNER, _group("admin"))),
        make_model("OrderItem", [
            make_field("quantity", "integer"),
            make_field("unitPrice", "float"),
        ], belongs_to=("Order", "Product"), authorization=(OWNER, _group("admin"))),
    ])
    provider = _text(decisions, "paymentProvider", "stripe").lower()
    return _finish(
        "e_commerce",
        decisions,
        models=models,
        auth=auth_strategy(decisions, social_default=[], groups_default=["admin"]),
        storage_descriptor=storage(names, _flag(decisions, "mediaUploads", True), [
            StorageAccessPath(path="product-images/*", access=[
                "allow.guest.to(['read'])",
                "allow.groups(['admin']).to(['read', 'write', 'delete'])",
            ]),
        ]),
        components=[
            component("ProductGrid", ComponentKind.LIST, "Product"),
            component("ProductDetail", ComponentKind.DETAIL, "Product"),
            component("Cart", ComponentKind.CART, "CartItem"),
            component("Checkout", ComponentKind.FORM, "Order"),
            component("OrderHistory", ComponentKind.LIST, "Order"),
        ],
        names=names,
        real_time_subscriptions=_flag(decisions, "realTime", False),
        payments=True,
        payment_provider=provider,
        search=_flag(decisions, "search", True),
    )


def content_management(decisions: Decisions) -> ProjectContext:
    """Publishing workflow with rich editing, revisions and tagging."""
    names = project_names(decisions)
    editorial = (OWNER, GUEST_READ, _group("editor"))
    models = parse_entities(decisions) or link_relationships([
        make_model("Author", [
            make_field("name"),
            make_field("email", "email"),
            make_field("bio", required=False),
        ], has_many=("Article",), authorization=(OWNER, GUEST_READ)),
        make_model("Article", [
            make_field("title"),
            make_field("slug"),
            make_field("body"),
            make_field("status"),
            make_field("publishedAt", "datetime", required=False),
        ], belongs_to=("Author",), has_many=("ArticleRevision",), authorization=editorial),
        make_model("ArticleRevision", [
            make_field("body"),
            make_field("version", "integer"),
        ], belongs_to=("Article",), authorization=(OWNER, _group("editor"))),
        make_model("Tag", [make_field("name")], authorization=(GUEST_READ, _group("editor"))),
    ])
    media = _flag(decisions, "mediaUploads", True)
    components = [
        component("ArticleList", ComponentKind.LIST, "Article"),
        component("ArticleEditor", ComponentKind.EDITOR, "Article"),
        component("ArticleView", ComponentKind.DETAIL, "Article"),
        component("TagManager", ComponentKind.LIST, "Tag"),
    ]
    if media:
        components.append(component("MediaLibrary", ComponentKind.LIST))
    return _finish(
        "content_management",
        decisions,
        models=models,
        auth=auth_strategy(decisions, social_default=[], groups_default=["admin", "editor"]),
        storage_descriptor=storage(names, media, [
            StorageAccessPath(path="public/media/*", access=[
                "allow.guest.to(['read'])",
                "allow.groups(['editor', 'admin']).to(['read', 'write', 'delete'])",
            ]),
        ]),
        components=components,
        names=names,
        real_time_subscriptions=_flag(decisions, "realTime", False),
        rich_text=True,
        search=_flag(decisions, "search", True),
    )


def dashboard_analytics(decisions: Decisions) -> ProjectContext:
    """Live metrics, configurable dashboards and chart widgets."""
    names = project_names(decisions)
    models = parse_entities(decisions) or link_relationships([
        make_model("DataSource", [
            make_field("name"),
            make_field("kind"),
            make_field("endpoint", "url", required=False),
        ], has_many=("Metric",), authorization=(OWNER, _group("admin"))),
        make_model("Metric", [
            make_field("name"),
            make_field("value", "float"),
            make_field("recordedAt", "datetime"),
        ], belongs_to=("DataSource",), authorization=(OWNER, AUTHENTICATED_READ)),
        make_model("Dashboard", [
            make_field("title"),
            make_field("layout", "json", required=False),
        ], has_many=("Widget",)),
        make_model("Widget", [
            make_field("title"),
            make_field("chartType"),
            make_field("query", "json"),
        ], belongs_to=("Dashboard",)),
    ])
    exports = _flag(decisions, "exports", False)
    return _finish(
        "dashboard_analytics",
        decisions,
        models=models,
        auth=auth_strategy(decisions, social_default=[], groups_default=["admin", "viewer"]),
        storage_descriptor=storage(names, exports, [
            StorageAccessPath(path="exports/{entity_id}/*", access=[
                "allow.entity('identity').to(['read', 'write', 'delete'])",
            ]),
        ]),
        components=[
            component("DashboardGrid", ComponentKind.LAYOUT, "Dashboard"),
            component("ChartWidget", ComponentKind.CHART, "Widget"),
            component("MetricTable", ComponentKind.LIST, "Metric"),
            component("DataSourceForm", ComponentKind.FORM, "DataSource"),
        ],
        names=names,
        real_time_subscriptions=_flag(decisions, "realTime", True),
        charts=True,
        search=_flag(decisions, "search", False),
    )


def simple_crud(decisions: Decisions) -> ProjectContext:
    """Plain forms over one or more owner-scoped models."""
    names = project_names(decisions)
    entity = _text(decisions, "entityName", "Item")
    if not split_words(entity):
        entity = "Item"
    models = parse_entities(decisions) or [
        make_model(entity, [
            make_field("title"),
            make_field("description", required=False),
            make_field("completed", "boolean", required=False),
        ]),
    ]
    media = _flag(decisions, "mediaUploads", False)
    return _finish(
        "simple_crud",
        decisions,
        models=models,
        auth=auth_strategy(decisions, social_default=[], groups_default=[]),
        storage_descriptor=storage(names, media, [
            StorageAccessPath(path="attachments/{entity_id}/*", access=[
                "allow.entity('identity').to(['read', 'write', 'delete'])",
            ]),
        ]),
        components=crud_components(models),
        names=names,
        real_time_subscriptions=_flag(decisions, "realTime", False),
        search=_flag(decisions, "search", False),
    )


BUILTIN_PATTERNS: dict[str, Generator] = {
    "social_platform": social_platform,
    "e_commerce": e_commerce,
    "content_management": content_management,
    "dashboard_analytics": dashboard_analytics,
    "simple_crud": simple_crud,
}
