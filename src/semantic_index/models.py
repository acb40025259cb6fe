from datetime import datetime, timezone

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    FiniteFloat,
    field_validator,
)

DEFAULT_DOCUMENT_TYPES: tuple[str, ...] = (
    "soil_analysis",
    "water_quality",
    "field_data",
    "planting_optimization",
)

EXPORT_FORMAT_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _MetadataFields(BaseModel):
    # Browser-era exports used camelCase keys; accept both on input.
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(description="Document category, stored as an opaque indexed string")
    region_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("region_code", "regionCode", "countyFips"),
        description="Optional free-form region filter field",
    )
    category_tag: str | None = Field(
        default=None,
        validation_alias=AliasChoices("category_tag", "categoryTag", "cropType"),
        description="Optional free-form category filter field",
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("created_at", "createdAt"),
        description="Embedding time, used for storage stats only",
    )
    title: str | None = Field(default=None, description="Optional display label")

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DocumentMetadata(_MetadataFields):
    """Metadata stored alongside every embedded document"""

    owner_id: str = Field(
        validation_alias=AliasChoices("owner_id", "ownerId", "userId"),
        description="Owning principal, used for isolation between callers",
    )


class DocumentInputMetadata(_MetadataFields):
    """Metadata supplied by the host; the owner is stamped on during indexing"""

    owner_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("owner_id", "ownerId", "userId"),
    )

    def for_owner(self, owner_id: str) -> DocumentMetadata:
        fields = self.model_dump(exclude={"owner_id"})
        return DocumentMetadata(owner_id=owner_id, **fields)


class DocumentInput(BaseModel):
    """A document handed over by the host for indexing"""

    id: str = Field(min_length=1)
    text: str
    metadata: DocumentInputMetadata


class DocumentEmbedding(BaseModel):
    """The unit of storage: a document with its embedding vector"""

    id: str = Field(min_length=1, description="Primary key; re-putting an id overwrites it")
    text: str = Field(description="Normalized source text")
    embedding: list[FiniteFloat] = Field(
        description="Fixed-length vector for the configured model; NaN and infinity are rejected"
    )
    metadata: DocumentMetadata


class SearchResult(BaseModel):
    """A stored document paired with its similarity to a query"""

    document: DocumentEmbedding
    similarity: float = Field(ge=-1.0, le=1.0)


class SearchOptions(BaseModel):
    """Filters and ranking parameters for a similarity search"""

    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=10, ge=1)
    threshold: float = Field(default=0.5, ge=-1.0, le=1.0)
    document_types: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("document_types", "documentTypes"),
    )
    region_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("region_code", "regionCode", "countyFips"),
    )
    category_tag: str | None = Field(
        default=None,
        validation_alias=AliasChoices("category_tag", "categoryTag", "cropType"),
    )


class SearchOutcome(BaseModel):
    """Result of a search call; ``error`` is set when the search itself failed"""

    results: list[SearchResult] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StorageStats(BaseModel):
    """Human-facing summary of the store contents"""

    total_documents: int
    total_size_estimate: int
    last_updated: datetime
    schema_versions: list[str]


class ExportBlob(BaseModel):
    """Whole-store snapshot written by export and read back by import"""

    version: str = EXPORT_FORMAT_VERSION
    exported: datetime = Field(default_factory=_utcnow)
    embeddings: list[DocumentEmbedding]
