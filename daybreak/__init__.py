from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from config import Config, config_dict
import os
import logging
from logging.config import dictConfig
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration


db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    env = config_name or os.getenv('FLASK_ENV', 'development')

    # Sentry only in production, and only when a DSN is configured
    if env == 'production' and os.getenv('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.2,
        )

    app = Flask(__name__)

    dictConfig(Config.LOGGING_CONFIG)

    app.config.from_object(config_dict.get(env, Config))

    db.init_app(app)
    migrate.init_app(app, db)

    # Register models with the metadata before create_all/migrations run
    from daybreak import models  # noqa: F401

    from daybreak.briefing import briefing_bp
    app.register_blueprint(briefing_bp)

    from daybreak.commands import init_db, briefing_cli
    app.cli.add_command(init_db)
    app.cli.add_command(briefing_cli)

    if app.config.get('BRIEFING_SCHEDULER_ENABLED'):
        from daybreak.scheduler import init_scheduler, start_scheduler
        init_scheduler(app)
        start_scheduler()

    app.logger.info(f"Daybreak app created (env={env})")
    return app
