from dotenv import load_dotenv
import os

load_dotenv()


def _csv(value):
    return [part.strip() for part in (value or '').split(',') if part.strip()]


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')

    if not SQLALCHEMY_DATABASE_URI:
        raise ValueError("DATABASE_URL environment variable not set")

    if SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    LOGGING_CONFIG = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {
                'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
                'level': 'INFO',
            },
        },
        'root': {
            'handlers': ['console'],
            'level': 'INFO',
        }
    }

    # Public URL used for dashboard links inside briefings
    APP_URL = os.getenv('APP_URL', 'http://localhost:5000')

    # Shared secret for the external cron trigger (X-Cron-Secret header)
    CRON_SECRET = os.getenv('CRON_SECRET')

    # Briefing scheduler
    BRIEFING_SCHEDULER_ENABLED = os.getenv('BRIEFING_SCHEDULER_ENABLED', 'False').lower() == 'true'
    BRIEFING_TICK_INTERVAL_MINUTES = int(os.getenv('BRIEFING_TICK_INTERVAL_MINUTES', '5'))
    BRIEFING_WINDOW_MINUTES = int(os.getenv('BRIEFING_WINDOW_MINUTES', '15'))  # must be >= tick interval
    BRIEFING_MAX_WORKERS = int(os.getenv('BRIEFING_MAX_WORKERS', '4'))
    BRIEFING_CLAIM_TTL_SECONDS = int(os.getenv('BRIEFING_CLAIM_TTL_SECONDS', '600'))

    # Timeouts (seconds) for every outbound call
    BRIEFING_PROVIDER_TIMEOUT_SECONDS = float(os.getenv('BRIEFING_PROVIDER_TIMEOUT_SECONDS', '10'))
    BRIEFING_GENERATION_TIMEOUT_SECONDS = float(os.getenv('BRIEFING_GENERATION_TIMEOUT_SECONDS', '20'))
    BRIEFING_CHANNEL_TIMEOUT_SECONDS = float(os.getenv('BRIEFING_CHANNEL_TIMEOUT_SECONDS', '10'))

    BRIEFING_EXTERNAL_TASK_PROVIDERS = _csv(os.getenv('BRIEFING_EXTERNAL_TASK_PROVIDERS', 'todoist,linear'))

    # Generative backend models (API keys are read from OPENAI_API_KEY / ANTHROPIC_API_KEY)
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
    ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-3-5-haiku-latest')

    # Channel transports
    SLACK_BOT_TOKEN = os.getenv('SLACK_BOT_TOKEN')
    TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_WHATSAPP_FROM = os.getenv('TWILIO_WHATSAPP_FROM')
    RESEND_API_KEY = os.getenv('RESEND_API_KEY')
    RESEND_FROM_EMAIL = os.getenv('RESEND_FROM_EMAIL', 'Daybreak <briefings@daybreak.example.com>')


class DevelopmentConfig(Config):
    FLASK_ENV = 'development'
    DEBUG = True
    SQLALCHEMY_ECHO = False


class ProductionConfig(Config):
    FLASK_ENV = 'production'
    DEBUG = False
    SENTRY_DSN = os.getenv('SENTRY_DSN')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 5,
        'max_overflow': 10,
        'pool_timeout': 30,
    }


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_ENGINE_OPTIONS = {}
    BRIEFING_SCHEDULER_ENABLED = False
    CRON_SECRET = 'test-cron-secret'
    BRIEFING_PROVIDER_TIMEOUT_SECONDS = 2.0
    BRIEFING_GENERATION_TIMEOUT_SECONDS = 2.0
    BRIEFING_CHANNEL_TIMEOUT_SECONDS = 2.0
    SLACK_BOT_TOKEN = 'xoxb-test'
    TELEGRAM_BOT_TOKEN = 'telegram-test'
    TWILIO_ACCOUNT_SID = 'AC-test'
    TWILIO_AUTH_TOKEN = 'twilio-test'
    TWILIO_WHATSAPP_FROM = 'whatsapp:+15550000000'
    RESEND_API_KEY = 're_test'


# Dictionary to easily access configurations
config_dict = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}
