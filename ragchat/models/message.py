import uuid
from datetime import datetime, timezone
from sqlalchemy.dialects import mysql
from ragchat.extensions import db

ROLE_USER = "user"
ROLE_MODEL = "model"
ROLES = (ROLE_USER, ROLE_MODEL)


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands timestamps back without tzinfo; they are always stored as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Message(db.Model):
    __tablename__ = "messages"

    id = db.Column(db.String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    session_id = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.Enum(*ROLES, name="message_role"), nullable=False)
    text = db.Column(db.Text, nullable=False)
    # fsp=6: MySQL DATETIME otherwise stores whole seconds
    created_at = db.Column(
        db.DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql", "mariadb"),
        nullable=False,
        default=utcnow,
        index=True,
    )

    def to_dict(self):
        created_at = as_utc(self.created_at)
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "role": self.role,
            "text": self.text,
            "createdAt": created_at.isoformat() if created_at else None,
        }

    def __repr__(self):
        return f"<Message {self.id} {self.role}>"
