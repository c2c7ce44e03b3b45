# citenet/api/models.py

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Rendering payloads
# ---------------------------------------------------------------------------


class RenderNode(BaseModel):
    """
    One node of a declarative network, consumed by any graph-drawing widget.
    """
    id: str = Field(..., description="Article id or author key.")
    label: str = Field(..., description="Display label (may contain a newline).")
    group_key: Optional[str] = Field(None, description="Grouping used for coloring.")
    level_key: Optional[int] = Field(
        None,
        description="0-based rank of the article's year among the distinct years present (layered layout).",
    )
    size_weight: int = Field(0, description="Node size driver (degree or publication count).")
    shape_key: str = Field(..., description="Role: seed / input / incoming / outgoing, or author / source_author.")


class RenderEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(..., alias="from")
    to_id: str = Field(..., alias="to")
    weight: Optional[int] = Field(None, description="Co-authorship counter (author network only).")
    collaborations: Optional[int] = Field(
        None,
        description="Number of shared articles for an author pair (weight / 2).",
    )


class CitationNetwork(BaseModel):
    nodes: List[RenderNode] = Field(default_factory=list)
    edges: List[RenderEdge] = Field(default_factory=list)


class AuthorNetwork(BaseModel):
    nodes: List[RenderNode] = Field(default_factory=list)
    edges: List[RenderEdge] = Field(default_factory=list)
    chosen_threshold: int = Field(
        ...,
        description="Minimum publication count an author needs to appear.",
    )


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


class CompletenessReport(BaseModel):
    """
    Data-completeness statistics for one session. Any ratio whose denominator
    is zero, or that does not apply to the provider, is None.
    """
    source_reference_count: int = Field(..., description="Length of the source's original reference list, holes included.")
    input_without_source: int = Field(..., description="Input articles with an id, excluding the source.")
    input_with_own_references: int = Field(0, description="Inputs that have a reference list themselves.")
    reference_coverage: Optional[float] = Field(None, ge=0.0, le=1.0)
    reference_list_coverage: Optional[float] = Field(None, ge=0.0, le=1.0)
    average_inner_completeness: Optional[float] = Field(None, ge=0.0, le=1.0)
    overall: Optional[float] = Field(None, ge=0.0, le=1.0)
    label: str = ""


# ---------------------------------------------------------------------------
# Session views
# ---------------------------------------------------------------------------


class ArticleSummary(BaseModel):
    id: str
    title: str = ""
    authors: str = Field("", description="Comma-separated author names.")
    year: Optional[int] = None
    journal: Optional[str] = None
    doi: Optional[str] = None
    in_degree: int = Field(0, description="Number of input articles referencing it.")
    out_degree: int = Field(0, description="Number of input articles it cites.")


class SessionSummary(BaseModel):
    index: int
    label: str
    title: str = ""
    api: str
    created_at: float
    loading: bool = False
    active: bool = False
    input_count: int = 0
    incoming_count: int = 0
    outgoing_count: int = 0
    errors: List[str] = Field(default_factory=list)


class SessionDetail(BaseModel):
    summary: SessionSummary
    source_id: Optional[str] = None
    input: List[ArticleSummary] = Field(default_factory=list)
    incoming_suggestions: List[ArticleSummary] = Field(default_factory=list)
    outgoing_suggestions: List[ArticleSummary] = Field(default_factory=list)
    visible_incoming: int = 0
    visible_outgoing: int = 0
