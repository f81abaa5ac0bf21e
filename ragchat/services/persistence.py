from functools import wraps
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from ragchat.extensions import db
from ragchat.errors import PersistenceError


def persistence_guard(f):
    """Decorator: roll back and raise PersistenceError when the store fails."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"{f.__module__}.{f.__name__}: store failure: {e}")
            raise PersistenceError(f"Store failure in {f.__name__}") from e
    return decorated_function
