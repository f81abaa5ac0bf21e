from datetime import timedelta
from ragchat.extensions import db
from ragchat.models.message import Message, ROLES, as_utc, utcnow
from ragchat.services.persistence import persistence_guard


def _next_created_at(session_id):
    """Store clock, forced strictly past the session's latest message."""
    now = utcnow()
    latest = db.session.query(db.func.max(Message.created_at)).filter(
        Message.session_id == session_id
    ).scalar()
    latest = as_utc(latest)
    if latest is not None and now <= latest:
        now = latest + timedelta(microseconds=1)
    return now


@persistence_guard
def append(session_id, role, text):
    """Append a message to a session; id and created_at are assigned here."""
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    msg = Message(
        session_id=session_id,
        role=role,
        text=text,
        created_at=_next_created_at(session_id),
    )
    db.session.add(msg)
    db.session.commit()
    return msg


@persistence_guard
def find_by_id(message_id):
    return db.session.get(Message, message_id)


@persistence_guard
def list_by_session(session_id):
    return Message.query.filter_by(session_id=session_id).order_by(
        Message.created_at.asc()
    ).all()


@persistence_guard
def update_text(message_id, new_text):
    """Replace only the text; created_at is left alone."""
    msg = db.session.get(Message, message_id)
    if msg is None:
        return None
    msg.text = new_text
    db.session.commit()
    return msg


@persistence_guard
def delete_after(session_id, created_at):
    """Delete every message in the session created strictly after created_at."""
    deleted = Message.query.filter(
        Message.session_id == session_id,
        Message.created_at > created_at,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted


@persistence_guard
def truncate_and_update(msg, new_text):
    """
    Edit-truncate: drop everything after msg and replace its text, in one
    transaction. Leaves msg as the terminal message of its session.
    """
    Message.query.filter(
        Message.session_id == msg.session_id,
        Message.created_at > msg.created_at,
    ).delete(synchronize_session=False)

    msg.text = new_text
    db.session.commit()
    return msg
