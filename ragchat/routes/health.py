from flask import Blueprint, jsonify
from ragchat.services.chunk_store import count_chunks

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "chunks": count_chunks()})
