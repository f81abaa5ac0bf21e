from ragchat.extensions import db


class DocumentChunk(db.Model):
    __tablename__ = "document_chunks"

    id = db.Column(db.String(64), primary_key=True)  # chunk_<ingestion ms>_<index>
    content = db.Column(db.Text, nullable=False)
    # Written as a JSON array; older rows may hold a JSON-encoded string or float32 bytes
    embedding = db.Column(db.JSON, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "content": self.content,
            "embedding": self.embedding,
        }

    def __repr__(self):
        return f"<DocumentChunk {self.id}>"
