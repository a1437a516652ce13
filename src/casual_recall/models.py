import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, JsonValue, TypeAdapter, field_validator

# Schema-less metadata: strings, numbers, bools, null, nested lists and maps
MetadataDocument = Dict[str, JsonValue]
metadata_adapter = TypeAdapter(MetadataDocument)

MemorySource = Literal["visual", "audio", "conversation", "thought", "reminder", "document"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
RetrievalSignal = Literal["semantic", "temporal", "relational"]


def local_naive(value: datetime) -> datetime:
    """
    Convert a datetime to naive local time.

    Memories are compared against datetime.now(), so aware values (e.g.
    parsed from "...Z" strings) are shifted to local time and made naive.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class VectorRecord(BaseModel):
    """A stored embedding with its metadata document and timestamps."""

    id: str
    embedding: List[float] = Field(..., description="L2-normalized embedding")
    norm: float = Field(..., description="Magnitude of the embedding before normalization")
    metadata: MetadataDocument = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class SearchResult(BaseModel):
    """A search hit with its exact cosine similarity."""

    id: str
    similarity: float
    metadata: MetadataDocument = Field(default_factory=dict)
    updated_at: datetime


class LocationContext(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    address: Optional[str] = None
    place_name: Optional[str] = None
    category: Optional[str] = None


class PersonContext(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    relationship: Optional[str] = None
    last_interaction: Optional[datetime] = None

    @field_validator("last_interaction")
    @classmethod
    def _local_last_interaction(cls, value: Optional[datetime]) -> Optional[datetime]:
        return local_naive(value) if value is not None else None


class EmotionContext(BaseModel):
    emotion: str
    intensity: float = Field(default=0.5, ge=0.0, le=1.0)


class MemoryContext(BaseModel):
    """What is happening around the user when memories are retrieved."""

    current_location: Optional[LocationContext] = None
    recent_people: List[PersonContext] = Field(default_factory=list)
    current_activity: Optional[str] = None
    time_of_day: Optional[TimeOfDay] = None
    mood: Optional[str] = None
    conversation_history: List[str] = Field(default_factory=list)
    time_range: Optional[Tuple[datetime, datetime]] = Field(
        default=None, description="Window for temporal candidates (start, end)"
    )

    @field_validator("time_range")
    @classmethod
    def _local_time_range(
        cls, value: Optional[Tuple[datetime, datetime]]
    ) -> Optional[Tuple[datetime, datetime]]:
        if value is None:
            return None
        start, end = value
        return local_naive(start), local_naive(end)


class Memory(BaseModel):
    """
    A single remembered item.

    The embedding stays empty until it is generated; when stored, the context
    attributes are flattened into the vector store's metadata document.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    embedding: List[float] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    location: Optional[LocationContext] = None
    people: List[PersonContext] = Field(default_factory=list)
    emotions: List[EmotionContext] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    source: MemorySource = "thought"
    metadata: MetadataDocument = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: List[str]) -> List[str]:
        return list(dict.fromkeys(tags))

    @field_validator("timestamp")
    @classmethod
    def _local_timestamp(cls, value: datetime) -> datetime:
        return local_naive(value)

    def to_metadata(self) -> MetadataDocument:
        """Flatten the memory into a metadata document for the vector store."""
        metadata: MetadataDocument = {
            "content": self.content,
            "timestamp": self.timestamp.timestamp(),
            "importance": self.importance,
            "source": self.source,
            "people": [person.model_dump(mode="json") for person in self.people],
            "emotions": [emotion.model_dump(mode="json") for emotion in self.emotions],
            "tags": list(self.tags),
            "extra": self.metadata,
        }
        if self.location is not None:
            metadata["location"] = self.location.model_dump(mode="json")
        return metadata

    @classmethod
    def from_metadata(cls, memory_id: str, metadata: MetadataDocument) -> "Memory":
        """Rebuild a memory from a document produced by to_metadata()."""
        timestamp = metadata.get("timestamp")
        return cls(
            id=memory_id,
            content=metadata.get("content") or "",
            timestamp=(
                datetime.fromtimestamp(timestamp)
                if isinstance(timestamp, (int, float))
                else datetime.now()
            ),
            location=metadata.get("location"),
            people=metadata.get("people") or [],
            emotions=metadata.get("emotions") or [],
            tags=metadata.get("tags") or [],
            importance=metadata.get("importance", 0.5),
            source=metadata.get("source") or "thought",
            metadata=metadata.get("extra") or {},
        )


class RetrievedMemory(BaseModel):
    """A memory returned by the retrieval orchestrator with its scores."""

    memory: Memory
    merge_score: float = Field(..., description="Coarse score from the multi-signal merge")
    rerank_score: float = Field(..., description="Fine score from the reranker")
    signals: List[RetrievalSignal] = Field(default_factory=list)
