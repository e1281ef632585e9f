# GateCheck Event Check-in System Configuration

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'gatecheck-secret-key-change-me'

    # Database Configuration
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'gatecheck.db')

    # Upload Configuration
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max CSV upload

    # Ticket Configuration
    DEFAULT_EVENT_NAME = os.environ.get('DEFAULT_EVENT_NAME') or 'My Event'

    # Check-in Configuration
    CHECKIN_AUDIT_INVALID = _env_flag('CHECKIN_AUDIT_INVALID', 'True')

    # Scanner Configuration
    SCANNER_CAMERA_FACING = os.environ.get('SCANNER_CAMERA_FACING') or 'environment'
    SCANNER_CAMERA_INDEXES = {
        'environment': int(os.environ.get('SCANNER_CAMERA_ENVIRONMENT') or 0),
        'user': int(os.environ.get('SCANNER_CAMERA_USER') or 1)
    }
    SCANNER_FRAME_RATE = 10
    SCANNER_DECODE_REGION = (250, 250)  # width, height of the centred decode box
    SCANNER_STOP_ON_RESULT = _env_flag('SCANNER_STOP_ON_RESULT', 'True')

    # Dashboard Configuration
    DASHBOARD_STREAM_KEEPALIVE = 15  # seconds between SSE keepalive comments
    NOTIFICATIONS_HISTORY_SIZE = 100

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'gatecheck.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = _env_flag('DEBUG')
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        directories = [cls.LOG_FILE.parent]
        if str(cls.DATABASE_PATH) != ':memory:':
            directories.append(Path(cls.DATABASE_PATH).parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        app.config.update({
            'SECRET_KEY': cls.SECRET_KEY,
            'MAX_CONTENT_LENGTH': cls.MAX_CONTENT_LENGTH,
            'DATABASE_PATH': str(cls.DATABASE_PATH),
            'DEFAULT_EVENT_NAME': cls.DEFAULT_EVENT_NAME,
            'CHECKIN_AUDIT_INVALID': cls.CHECKIN_AUDIT_INVALID,
            'SCANNER_CAMERA_FACING': cls.SCANNER_CAMERA_FACING,
            'SCANNER_CAMERA_INDEXES': dict(cls.SCANNER_CAMERA_INDEXES),
            'SCANNER_FRAME_RATE': cls.SCANNER_FRAME_RATE,
            'SCANNER_DECODE_REGION': cls.SCANNER_DECODE_REGION,
            'SCANNER_STOP_ON_RESULT': cls.SCANNER_STOP_ON_RESULT,
            'DASHBOARD_STREAM_KEEPALIVE': cls.DASHBOARD_STREAM_KEEPALIVE,
            'NOTIFICATIONS_HISTORY_SIZE': cls.NOTIFICATIONS_HISTORY_SIZE,
            'DEBUG': cls.DEBUG,
            'TESTING': cls.TESTING,
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'gatecheck_dev.db')

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Overridden per test with a temporary file
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'gatecheck_test.db')

    CHECKIN_AUDIT_INVALID = True
    DASHBOARD_STREAM_KEEPALIVE = 1


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'gatecheck_prod.db')

    # Production logging
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        if not app.debug:
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('GateCheck startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


class QRCodeConfig:
    """QR Code specific configuration"""

    VERSION = 1  # Controls the size of the QR Code
    ERROR_CORRECT = {
        'L': 1,  # ~7% error correction
        'M': 0,  # ~15% error correction (default)
        'Q': 3,  # ~25% error correction
        'H': 2   # ~30% error correction
    }
    ERROR_LEVEL = 'M'
    BOX_SIZE = 10
    BORDER = 4

    FILL_COLOR = "black"
    BACK_COLOR = "white"


class DatabaseConfig:
    """Database specific configuration"""

    # Connection settings
    TIMEOUT = 30.0
    CHECK_SAME_THREAD = False

    # WAL mode lets scanners read while another device writes
    JOURNAL_MODE = 'WAL'
    SYNCHRONOUS = 'NORMAL'


def get_config():
    """Get configuration based on environment variable"""
    return config.get(os.environ.get('FLASK_ENV', 'default'), DevelopmentConfig)


def validate_config(config_class=Config):
    """Validate configuration settings"""
    errors = []

    if config_class.SCANNER_CAMERA_FACING not in config_class.SCANNER_CAMERA_INDEXES:
        errors.append(f"Unknown camera facing: {config_class.SCANNER_CAMERA_FACING}")

    if config_class.SCANNER_FRAME_RATE <= 0:
        errors.append("SCANNER_FRAME_RATE must be positive")

    width, height = config_class.SCANNER_DECODE_REGION
    if width <= 0 or height <= 0:
        errors.append("SCANNER_DECODE_REGION must have a positive width and height")

    if not str(config_class.DEFAULT_EVENT_NAME).strip():
        errors.append("DEFAULT_EVENT_NAME must not be empty")

    return errors


def init_config(app, config_name=None):
    """Initialize application with configuration"""
    if config_name is None:
        config_class = get_config()
    else:
        config_class = config.get(config_name, DevelopmentConfig)
    config_class.init_app(app)

    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
