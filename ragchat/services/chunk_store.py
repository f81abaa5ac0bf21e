import numpy as np
from ragchat.extensions import db
from ragchat.errors import DuplicateId
from ragchat.models.chunk import DocumentChunk
from ragchat.services.persistence import persistence_guard
from ragchat.services.similarity import decode_embedding


@persistence_guard
def insert_chunk(chunk_id, content, embedding, commit=True):
    """
    Persist one chunk. Embeddings are always written as a native JSON array.

    With commit=False the row is only added to the session, so a caller can
    batch a whole ingestion into one transaction.
    """
    if not content:
        raise ValueError(f"Chunk {chunk_id} has empty content")
    if db.session.get(DocumentChunk, chunk_id) is not None:
        raise DuplicateId(chunk_id)

    chunk = DocumentChunk(
        id=chunk_id,
        content=content,
        embedding=np.asarray(embedding, dtype=np.float32).tolist(),
    )
    db.session.add(chunk)
    if commit:
        db.session.commit()
    return chunk


@persistence_guard
def scan_chunks():
    """Full, unordered enumeration of the store as {id, content, embedding} dicts."""
    rows = db.session.query(
        DocumentChunk.id, DocumentChunk.content, DocumentChunk.embedding
    ).all()
    return [{"id": r.id, "content": r.content, "embedding": r.embedding} for r in rows]


@persistence_guard
def count_chunks():
    return db.session.query(DocumentChunk).count()


@persistence_guard
def clear_chunks(commit=True):
    deleted = DocumentChunk.query.delete()
    if commit:
        db.session.commit()
    return deleted


@persistence_guard
def embedding_dimension():
    """Length D shared by the stored embeddings, or None for an empty store."""
    row = db.session.query(DocumentChunk.embedding).first()
    if row is None:
        return None
    return decode_embedding(row.embedding).size
