from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .core.constants import MAX_ATTACHMENT_BYTES, MAX_ATTACHMENTS
from .database.bootstrap import apply_schema, list_tables, seed_departments

from .container import Container, build_container
from .chats.controller import register as register_chats

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    # Whole multipart body: every attachment at the limit plus form fields.
    app.config["MAX_CONTENT_LENGTH"] = MAX_ATTACHMENTS * MAX_ATTACHMENT_BYTES + 1024 * 1024

    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"), format=LOG_FORMAT)

    if container is None:
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            seed_departments(db_config)
            logger.info("departments seeded")

        container = build_container(db_config=db_config, settings=settings)

    register_chats(app, container)

    return app
