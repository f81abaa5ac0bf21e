import time
from flask import current_app
from ragchat.extensions import db
from ragchat.errors import EmptyDocument, LengthMismatch
from ragchat.services import chunk_store
from ragchat.services.gemini import GeminiService


def split_into_chunks(text, size):
    """Consecutive, non-overlapping windows of `size` characters; the last may be shorter."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [text[i:i + size] for i in range(0, len(text), size)]


def ingest_document(path, chunk_size=None, replace=False, service=None):
    """
    Read a UTF-8 document, chunk it, embed every chunk and store it.

    The whole run is one transaction: it commits after the last chunk and rolls
    back on any failure, so a failed run can simply be repeated.

    Args:
        path: document to ingest
        chunk_size: window size in characters (default CHUNK_SIZE_CHARS)
        replace: clear the chunk store first, in the same transaction
        service: GeminiService-compatible object with an embed(text) method

    Returns:
        list of stored chunk ids, in document order
    """
    if chunk_size is None:
        chunk_size = current_app.config["CHUNK_SIZE_CHARS"]
    service = service or GeminiService()

    with open(path, encoding="utf-8") as f:
        content = f.read()
    if not content:
        raise EmptyDocument(f"Document is empty: {path}")

    chunks = split_into_chunks(content, chunk_size)
    current_app.logger.info(f"ingestion: {path} split into {len(chunks)} chunks of <= {chunk_size} chars")

    batch_ms = int(time.time() * 1000)
    chunk_ids = []
    try:
        if replace:
            removed = chunk_store.clear_chunks(commit=False)
            current_app.logger.info(f"ingestion: cleared {removed} existing chunks")

        # Every chunk in a store generation shares one dimension
        dimension = chunk_store.embedding_dimension()
        for i, chunk_text in enumerate(chunks):
            embedding = service.embed(chunk_text)
            if dimension is None:
                dimension = len(embedding)
            elif len(embedding) != dimension:
                raise LengthMismatch(dimension, len(embedding))
            chunk_id = f"chunk_{batch_ms}_{i}"
            chunk_store.insert_chunk(chunk_id, chunk_text, embedding, commit=False)
            chunk_ids.append(chunk_id)
            current_app.logger.info(f"ingestion: processed chunk {i + 1} of {len(chunks)}")

        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"ingestion: failed after {len(chunk_ids)} of {len(chunks)} chunks; rolled back")
        raise

    current_app.logger.info(f"ingestion: complete, {len(chunk_ids)} chunks stored")
    return chunk_ids
