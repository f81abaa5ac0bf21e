import click
from flask import Flask, jsonify, request
from config import Config
from ragchat.errors import ConfigError, RagChatError
from ragchat.extensions import db, migrate


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    if not app.config.get("LLM_API_KEY"):
        raise ConfigError("LLM_API_KEY is not set")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Register blueprints
    from ragchat.routes.chat import chat_bp
    from ragchat.routes.health import health_bp

    app.register_blueprint(chat_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(RagChatError)
    def handle_service_error(e):
        app.logger.error(f"{request.method} {request.path} -> {e.status_code} {e.__class__.__name__}: {e}")
        return jsonify({"error": e.message}), e.status_code

    _register_commands(app)

    # Create tables on first run
    with app.app_context():
        from ragchat.models import chunk, message  # noqa
        db.create_all()

    return app


def _register_commands(app):
    @app.cli.command("ingest")
    @click.argument("path", required=False)
    @click.option("--chunk-size", type=int, default=None, help="Window size in characters.")
    @click.option("--replace", is_flag=True, help="Clear existing chunks before ingesting.")
    def ingest_command(path, chunk_size, replace):
        """Chunk, embed and store a document."""
        from ragchat.services.ingestion import ingest_document

        path = path or app.config["DOCUMENT_PATH"]
        try:
            chunk_ids = ingest_document(path, chunk_size=chunk_size, replace=replace)
        except (RagChatError, OSError, ValueError) as e:
            raise click.ClickException(f"Ingestion failed: {e}") from e
        click.echo(f"Ingested {len(chunk_ids)} chunks from {path}.")
