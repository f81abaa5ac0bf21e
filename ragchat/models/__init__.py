# Import all models so SQLAlchemy sees them
from ragchat.models.chunk import DocumentChunk  # noqa
from ragchat.models.message import Message  # noqa
