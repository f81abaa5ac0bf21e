from flask import Blueprint, request, jsonify, current_app
from ragchat.errors import BadRequest
from ragchat.services.chat_service import get_history, handle_message
from ragchat.services.gemini import GeminiService

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/history", methods=["GET"])
def history():
    session_id = request.args.get("sessionId", "")
    if not session_id.strip():
        return jsonify({"error": "sessionId is required"}), 400
    return jsonify(get_history(session_id))


@chat_bp.route("/message", methods=["POST"])
def post_message():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("JSON body required")

    session_id = data.get("sessionId")
    text = data.get("text")
    is_edit = data.get("isEdit") or False
    message_id = data.get("messageId")

    if not session_id or not text:
        return jsonify({"error": "text and sessionId are required"}), 400

    service = GeminiService()
    result = handle_message(session_id, text, service, is_edit=is_edit, message_id=message_id)

    current_app.logger.debug(f"chat: session {session_id} handled (edit={is_edit})")
    return jsonify(result)
