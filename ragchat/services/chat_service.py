from flask import current_app
from ragchat.errors import BadRequest, NotFound
from ragchat.models.message import ROLE_MODEL, ROLE_USER
from ragchat.services import chunk_store, intent_router, message_log
from ragchat.services.similarity import top_k

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant answering questions about a specific document. "
    "Your primary goal is to answer the user's question using the provided context. "
    "The user's question might be phrased differently than the document; connect synonyms and related concepts. "
    "If the context clearly contains the answer, or it can be inferred from the context, provide it. "
    "If the question is about a specific policy, number, or detail, and the answer is not in the context, "
    "you MUST say: \"I'm sorry, I can't answer this question, this is against my policy.\" "
    "Do not answer general-knowledge questions unrelated to the document."
)

CHUNK_SEPARATOR = "\n\n---\n\n"


def build_augmented_prompt(chunks, question):
    """Prefix the user's question with the retrieved chunk contents."""
    context = CHUNK_SEPARATOR.join(c["content"] for c in chunks)
    return (
        "Context:\n"
        '"""\n'
        f"{context}\n"
        '"""\n'
        "User Question:\n"
        '"""\n'
        f"{question}\n"
        '"""'
    )


def answer_from_document(text, service, session_id=None):
    """Embed the question, rank every stored chunk and ask the model."""
    query_vec = service.embed(text)
    chunks = chunk_store.scan_chunks()
    top = top_k(query_vec, chunks, current_app.config["RETRIEVAL_TOP_K"])
    if top:
        current_app.logger.info(
            f"chat_service: session {session_id} retrieved {len(top)} of {len(chunks)} chunks "
            f"(best similarity {top[0]['similarity']:.3f})"
        )
    else:
        current_app.logger.warning(f"chat_service: session {session_id} found no stored chunks")
    return service.generate(build_augmented_prompt(top, text), SYSTEM_INSTRUCTION)


def _validate(session_id, text, is_edit, message_id):
    if not isinstance(session_id, str) or not session_id.strip():
        raise BadRequest("sessionId is required", field="sessionId")
    if not isinstance(text, str) or not text.strip():
        raise BadRequest("text is required", field="text")
    if not isinstance(is_edit, bool):
        raise BadRequest("isEdit must be a boolean", field="isEdit")
    if is_edit and (not isinstance(message_id, str) or not message_id.strip()):
        raise BadRequest("messageId is required when isEdit is true", field="messageId")


def handle_message(session_id, text, service, is_edit=False, message_id=None):
    """
    Record a user turn, produce a reply and record the model turn.

    On edit the target message keeps its created_at, everything after it is
    deleted and its text is replaced, all in one transaction.

    Returns:
        {"success": True} for an edit, otherwise {"userMessage", "aiMessage"}
        with both records serialised.

    Failures after the user turn is recorded propagate and leave that turn in
    place.
    """
    _validate(session_id, text, is_edit, message_id)

    if is_edit:
        target = message_log.find_by_id(message_id)
        if target is None or target.session_id != session_id or target.role != ROLE_USER:
            current_app.logger.warning(f"chat_service: edit of unknown or foreign message {message_id} in session {session_id}")
            raise NotFound("Message not found")
        user_msg = message_log.truncate_and_update(target, text)
        current_app.logger.info(f"chat_service: session {session_id} edited message {user_msg.id}; later turns removed")
    else:
        user_msg = message_log.append(session_id, ROLE_USER, text)

    intent = intent_router.classify(text, service, session_id=session_id)
    if intent["intent"] == intent_router.GREETING:
        current_app.logger.info(f"chat_service: session {session_id} classified as greeting")
        ai_text = intent["reply"]
    else:
        ai_text = answer_from_document(text, service, session_id=session_id)

    ai_msg = message_log.append(session_id, ROLE_MODEL, ai_text)

    if is_edit:
        return {"success": True}
    return {"userMessage": user_msg.to_dict(), "aiMessage": ai_msg.to_dict()}


def get_history(session_id):
    if not isinstance(session_id, str) or not session_id.strip():
        raise BadRequest("sessionId is required", field="sessionId")
    return [m.to_dict() for m in message_log.list_by_session(session_id)]
