#!/usr/bin/env python3
"""
SupplyHub — Application Entry Point
Creates Flask app and registers the API Blueprint.
"""

import os
import logging

import click
from flask import Flask

log = logging.getLogger("supplyhub")


def create_app(config: dict = None):
    """Application factory."""
    from supplyhub.core.logging_config import setup_logging
    from supplyhub.core.db import init_db
    from supplyhub.core.paths import validate_paths
    from supplyhub.core.secrets import startup_check
    from supplyhub.core.security import init_security
    from supplyhub.api import bp

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 12 * 1024 * 1024
    if config:
        app.config.update(config)

    if not app.config.get("TESTING"):
        setup_logging()

    # ── Persistent database init ──────────────────────────────────────────────
    paths = validate_paths()
    for err in paths["errors"]:
        log.error("PATHS: %s", err)
    init_db()
    startup_check()

    app.register_blueprint(bp)

    # ── Security middleware (rate limiting, headers) ──────────────────────────
    init_security(app)

    @app.cli.command("seed")
    def seed_command():
        """Load default categories and sample products."""
        from supplyhub.seed_data import seed_catalog
        added = seed_catalog()
        click.echo(f"Seeded {added['categories']} categories, {added['products']} products")

    return app


# For gunicorn: gunicorn app:app
app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False)
