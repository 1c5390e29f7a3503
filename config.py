"""
Configuration settings for different environments.
"""
import os

from dotenv import load_dotenv

# Load environment variables before the classes below read them
load_dotenv()


def _send_email_url(supabase_url):
    explicit = os.getenv('SEND_EMAIL_URL')
    if explicit:
        return explicit
    if supabase_url:
        return f"{supabase_url.rstrip('/')}/functions/v1/send-email"
    return None


class Config:
    """Base configuration"""
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Supabase (service role: reminders read every user's tasks and look up auth users)
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY')

    # Links inside reminder emails
    APP_ORIGIN = os.getenv('APP_ORIGIN', 'https://app.rivohome.com')

    # Mail delivery: 'function' posts to the send-email edge function, 'smtp' talks SMTP directly
    MAIL_BACKEND = os.getenv('MAIL_BACKEND', 'function')
    SEND_EMAIL_URL = _send_email_url(SUPABASE_URL)
    MAIL_TIMEOUT_SECONDS = float(os.getenv('MAIL_TIMEOUT_SECONDS', '10'))
    SMTP_HOST = os.getenv('SMTP_HOST', 'smtp-relay.brevo.com')
    SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
    SMTP_USER = os.getenv('SMTP_USER')
    SMTP_PASS = os.getenv('SMTP_PASS')
    FROM_EMAIL = os.getenv('FROM_EMAIL', 'no-reply@rivohome.com')
    FROM_NAME = os.getenv('FROM_NAME', 'RivoHome')

    # Reminder run
    REMINDER_MAX_WORKERS = int(os.getenv('REMINDER_MAX_WORKERS', '4'))
    # When set, POST /reminders requires "Authorization: Bearer <secret>"
    REMINDERS_CRON_SECRET = os.getenv('REMINDERS_CRON_SECRET')

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    APP_ORIGIN = 'https://app.example.test'
    REMINDERS_CRON_SECRET = None
    REMINDER_MAX_WORKERS = 2

# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
