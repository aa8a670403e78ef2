import os

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('AUDITGUARD_SECRET') or 'dev-secret-key'
    DEBUG = os.environ.get('AUDITGUARD_DEBUG', 'true').lower() in ('1', 'true', 'yes')
    PORT = int(os.environ.get('AUDITGUARD_PORT', '5002'))
    CORS_ORIGINS = os.environ.get('AUDITGUARD_CORS', '*')
    LOG_LEVEL = os.environ.get('AUDITGUARD_LOG_LEVEL', 'INFO').upper()
    ENV_NAME = 'development'
    DEV_LOGIN_ENABLED = True

    # Database
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    DB_NAME = 'auditguard.db'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        f"sqlite:///{os.path.join(BASE_DIR, DB_NAME)}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Uploads (PDF reports, audio recordings, photos)
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', str(50 * 1024 * 1024)))

    # OpenRouter compatible AI endpoint
    AI_API_KEY = os.environ.get('OPENROUTER_API_KEY') or os.environ.get('AI_INTEGRATIONS_OPENROUTER_API_KEY')
    AI_BASE_URL = os.environ.get('AI_INTEGRATIONS_OPENROUTER_BASE_URL') or 'https://openrouter.ai/api/v1'
    AI_SCORING_MODEL = os.environ.get('AUDITGUARD_SCORING_MODEL', 'anthropic/claude-3-haiku')
    AI_DRAFT_MODEL = os.environ.get('AUDITGUARD_DRAFT_MODEL', 'deepseek/deepseek-v3.2')
    AI_VISION_MODEL = os.environ.get('AUDITGUARD_VISION_MODEL', 'google/gemini-2.0-flash-001')

    ADMIN_ID = 'ADMIN'
    DEFAULT_PASSWORD = 'password123'
    EXPORT_UNFILTERED_LIMIT = 50

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True

class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    ENV_NAME = 'production'
    DEV_LOGIN_ENABLED = False
    # Ensure SECRET_KEY is set in production
    @property
    def SECRET_KEY(self):
        key = os.environ.get('AUDITGUARD_SECRET')
        if not key:
            raise ValueError("AUDITGUARD_SECRET environment variable is required in production")
        return key

class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    ENV_NAME = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    AI_API_KEY = None
    LOG_LEVEL = 'WARNING'

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
