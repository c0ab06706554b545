"""Document, chunk, and embedding models.

A project's manuscript text is saved as a versioned :class:`Document`.  Each
save produces a new version with a fresh ``content_hash``; an existing
version is never mutated.  The chunker splits a document version into
ordered :class:`Chunk` spans whose union covers every character of the
source text, and each chunk is embedded into a fixed-dimension
:class:`Embedding` tagged with the embedder version that produced it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """One immutable saved version of a project's text."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Identifier of the document within its project.")
    project_id: str = Field(description="Owning project.")
    owner_id: str = Field(default="", description="Identifier of the writer who owns the project.")
    text: str = Field(description="Full source text of this version.")
    content_hash: str = Field(description="SHA-256 hex digest of the text.")
    version: int = Field(ge=1, description="Monotonically increasing version number.")
    updated_at: datetime = Field(description="When this version was saved (UTC).")

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class Chunk(BaseModel):
    """An ordered span of a document version.

    ``text`` is exactly ``document.text[start_offset:end_offset]``.  Chunks
    of one version may overlap but never leave a gap.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description='Stable id rendered as "{document_id}:{version}:{order}".')
    document_id: str = Field(description="Parent document identifier.")
    version: int = Field(ge=1, description="Document version this chunk belongs to.")
    order: int = Field(ge=0, description="Zero-based position of the chunk in the document.")
    start_offset: int = Field(ge=0, description="Inclusive character offset into the source text.")
    end_offset: int = Field(ge=0, description="Exclusive character offset into the source text.")
    text: str = Field(description="The chunk's textual content.")
    chapter_label: str | None = Field(
        default=None,
        description="Chapter heading in effect at the start of the chunk, if any.",
    )

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @staticmethod
    def make_id(document_id: str, version: int, order: int) -> str:
        return f"{document_id}:{version}:{order}"


class Embedding(BaseModel):
    """A chunk's vector together with the embedder version that produced it."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    vector: list[float] = Field(description="Fixed-dimension embedding vector.")
    embedder_version: str = Field(
        description='Provider/model/dimension identifier, e.g. "openai/text-embedding-3-small/1536".'
    )

    @property
    def dimension(self) -> int:
        return len(self.vector)


class IndexingResult(BaseModel):
    """Summary of one ``index_document`` run."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    document_id: str
    version: int = Field(ge=1, description="Current version after the run.")
    content_hash: str
    unchanged: bool = Field(
        default=False,
        description="True when the content hash matched the current version and nothing was re-indexed.",
    )
    chunks_total: int = Field(default=0, ge=0, description="Chunks produced by the chunker.")
    chunks_indexed: int = Field(default=0, ge=0, description="Chunks published to the vector index.")
    failed_chunk_ids: list[str] = Field(
        default_factory=list,
        description="Chunks excluded because their embedding permanently failed.",
    )
    embedder_version: str = ""
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
