"""Core data model for hybrid retrieval.

Vectors, classifications and candidates are plain dataclasses; they are
built per request and never persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


WILDCARD_SUB_CATEGORY = "discounts"


@dataclass
class SparseVector:
    """Sparse feature map stored as parallel ``indices``/``values`` lists."""
    indices: List[int] = field(default_factory=list)
    values: List[float] = field(default_factory=list)

    def __post_init__(self):
        if len(self.indices) != len(self.values):
            raise ValueError(
                f"indices and values differ in length: {len(self.indices)} != {len(self.values)}"
            )

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        return iter(zip(self.indices, self.values))

    @property
    def is_empty(self) -> bool:
        return not self.indices

    def scale(self, factor: float) -> "SparseVector":
        """Return a copy with every value multiplied by ``factor``."""
        return SparseVector(list(self.indices), [value * factor for value in self.values])

    def to_dict(self) -> Dict[str, List]:
        return {"indices": list(self.indices), "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SparseVector":
        return cls(
            indices=[int(i) for i in data.get("indices", [])],
            values=[float(v) for v in data.get("values", [])],
        )


@dataclass
class HybridVector:
    """Dense and sparse halves of one query, already alpha-scaled."""
    dense: List[float]
    sparse: SparseVector
    token_count: int = 0

    # Names used by the orchestration layer.
    @property
    def dense_scaled(self) -> List[float]:
        return self.dense

    @property
    def sparse_scaled(self) -> SparseVector:
        return self.sparse


class InteractionType(Enum):
    """Interaction types used to partition a website's content."""
    SALES = "sales"
    SUPPORT = "support"
    DISCOUNTS = "discounts"
    NONE_SPECIFIED = "noneSpecified"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["InteractionType"]:
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class SubCategory:
    """Sub-category of a classification: a specific label or the wildcard.

    The classifier emits ``"discounts"`` when it has no opinion; that sentinel
    and a missing value both parse to the wildcard, which matches any
    candidate sub-category.
    """
    value: Optional[str] = None

    @classmethod
    def wildcard(cls) -> "SubCategory":
        return cls(None)

    @classmethod
    def specific(cls, value: str) -> "SubCategory":
        if not value:
            raise ValueError("specific sub-category requires a value")
        return cls(value)

    @classmethod
    def parse(cls, value: Optional[str]) -> "SubCategory":
        if not value or value == WILDCARD_SUB_CATEGORY:
            return cls.wildcard()
        return cls.specific(value)

    @property
    def is_wildcard(self) -> bool:
        return self.value is None

    def matches(self, candidate_value: Optional[str]) -> bool:
        if self.is_wildcard or not candidate_value:
            return True
        return candidate_value == self.value

    def label(self) -> str:
        """Label as written to index metadata (wildcard becomes the sentinel)."""
        return WILDCARD_SUB_CATEGORY if self.is_wildcard else self.value


@dataclass
class Classification:
    """Coarse intent label attached to a user query."""
    type: str
    category: str = ""
    sub_category: SubCategory = field(default_factory=SubCategory.wildcard)
    interaction_type: Optional[InteractionType] = None
    action_intent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Classification":
        """Build from classifier JSON (``sub-category``/``interaction_type`` keys)."""
        raw_sub = (
            data.get("sub-category")
            or data.get("sub_category")
            or data.get("subcategory")
        )
        return cls(
            type=data.get("type") or "",
            category=data.get("category") or "",
            sub_category=SubCategory.parse(raw_sub),
            interaction_type=InteractionType.parse(data.get("interaction_type")),
            action_intent=data.get("action_intent"),
        )


_METADATA_FIELDS = ("type", "category", "title", "question", "content", "answer", "handle")
_SUB_CATEGORY_KEYS = ("sub-category", "subcategory", "sub_category")


@dataclass
class CandidateMetadata:
    """Typed view over an index document's metadata.

    Known fields are attributes; anything else the ingestion pipeline stored
    is kept verbatim in ``extra``.
    """
    type: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    title: Optional[str] = None
    question: Optional[str] = None
    content: Optional[str] = None
    answer: Optional[str] = None
    handle: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_title(self) -> Optional[str]:
        return self.title or self.question

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CandidateMetadata":
        data = dict(data or {})
        known = {name: data.pop(name) for name in _METADATA_FIELDS if name in data}
        sub_category = None
        for key in _SUB_CATEGORY_KEYS:
            if key in data:
                value = data.pop(key)
                if sub_category is None:
                    sub_category = value
        return cls(
            sub_category=sub_category,
            extra=data,
            **{name: (str(value) if value is not None else None) for name, value in known.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        for name in _METADATA_FIELDS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.sub_category is not None:
            data["sub-category"] = self.sub_category
        return data


@dataclass
class Candidate:
    """One match returned by the vector index."""
    id: str
    score: Optional[float] = None
    metadata: CandidateMetadata = field(default_factory=CandidateMetadata)

    @property
    def natural_key(self) -> str:
        """Handle when the document has one, otherwise the index id."""
        return self.metadata.handle or self.id

    @property
    def question_key(self) -> str:
        """Question text for QA documents, otherwise the index id."""
        return self.metadata.question or self.id


@dataclass
class RerankedCandidate:
    """Candidate plus the sort keys computed by the reranker."""
    candidate: Candidate
    rerank_score: float
    classification_match: str

    @property
    def id(self) -> str:
        return self.candidate.id

    @property
    def score(self) -> Optional[float]:
        return self.candidate.score

    @property
    def metadata(self) -> CandidateMetadata:
        return self.candidate.metadata
