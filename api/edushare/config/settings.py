import os
from pathlib import Path
from dotenv import load_dotenv
import logging
import sys
from typing import Dict, List, Set

# Load environment variables
load_dotenv()

# Environment check
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Directory Configuration
DATA_DIR = os.path.abspath(os.getenv("DATA_DIR", os.path.join(BASE_DIR, "data")))
FILES_DIR = os.path.abspath(os.getenv("FILES_DIR", os.path.join(DATA_DIR, "files")))
LOGS_DIR = os.path.abspath(os.getenv("LOGS_DIR", os.path.join(BASE_DIR, "logs")))

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Reduce noise from boto3 and other AWS libraries
logging.getLogger('botocore').setLevel(logging.WARNING)
logging.getLogger('boto3').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)
logging.getLogger('s3transfer').setLevel(logging.WARNING)

# Reduce noise from the database driver and multipart parsing
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('multipart').setLevel(logging.WARNING)
logging.getLogger('multipart.multipart').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('uvicorn').setLevel(logging.INFO)

logger = logging.getLogger(__name__)

# Configure file handler with rotation
if IS_PRODUCTION:
    from logging.handlers import RotatingFileHandler
    try:
        os.makedirs(LOGS_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(LOGS_DIR, "app.log"),
            maxBytes=10485760,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not create log file in {LOGS_DIR}: {e}")

# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(DATA_DIR, 'edushare.db')}")

# Security Settings
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY and IS_PRODUCTION:
    raise ValueError("JWT_SECRET_KEY must be set in production environment")
elif not JWT_SECRET_KEY:
    logger.warning("JWT_SECRET_KEY not found in environment variables. Using a default key for development only.")
    JWT_SECRET_KEY = "supersecretkey"  # Only for development

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours default

# Lecturer account checked by the static credential verifier
LECTURER_EMAIL = os.getenv("LECTURER_EMAIL", "admin@admin.com")
LECTURER_PASSWORD = os.getenv("LECTURER_PASSWORD")
LECTURER_PASSWORD_HASH = os.getenv("LECTURER_PASSWORD_HASH")

if not (LECTURER_PASSWORD or LECTURER_PASSWORD_HASH):
    if IS_PRODUCTION:
        raise ValueError("LECTURER_PASSWORD or LECTURER_PASSWORD_HASH must be set in production environment")
    logger.warning("Lecturer password not configured. Using a default password for development only.")
    LECTURER_PASSWORD = "edushare@123"  # Only for development

# Login rate limiting
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "300"))
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))

# Retry policy for store operations
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY = float(os.getenv("RETRY_BASE_DELAY", "1.0"))  # seconds

# Live content feed
SUBSCRIPTION_POLL_INTERVAL = float(os.getenv("SUBSCRIPTION_POLL_INTERVAL", "5.0"))  # seconds

# Download history
DOWNLOAD_RECORDS_LIMIT = int(os.getenv("DOWNLOAD_RECORDS_LIMIT", "50"))

# File Configuration
ALLOWED_EXTENSIONS: Dict[str, Set[str]] = {
    "pdf": {".pdf"},
    "powerpoint": {".ppt", ".pptx"},
}
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", "52428800"))  # 50MB default

# API Settings
API_TITLE = "EduShare API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Lecture material sharing with lecturer uploads and student-gated downloads"

# CORS Configuration
CORS_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ENV_CORS_ORIGINS = os.getenv("CORS_ORIGINS")
if ENV_CORS_ORIGINS:
    # Comma or semicolon separated
    env_origins = [origin.strip() for origin in ENV_CORS_ORIGINS.replace(';', ',').split(',') if origin.strip()]
    env_origins = [origin for origin in env_origins if origin.startswith('http://') or origin.startswith('https://')]
    if env_origins:
        CORS_ORIGINS = env_origins
        logger.info(f"CORS origins overridden from environment: {CORS_ORIGINS}")
    else:
        logger.warning("Environment CORS_ORIGINS parsed but no valid origins found, using defaults")

CORS_ALLOW_ALL = os.getenv("CORS_ALLOW_ALL", "false").lower() == "true"
if CORS_ALLOW_ALL:
    logger.warning("CORS_ALLOW_ALL is enabled - allowing all origins (NOT RECOMMENDED FOR PRODUCTION)")
    CORS_ORIGINS = ["*"]

# S3 Configuration
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL")  # for S3-compatible stores

if S3_BUCKET_NAME and S3_ENDPOINT_URL:
    S3_BASE_URL = f"{S3_ENDPOINT_URL.rstrip('/')}/{S3_BUCKET_NAME}"
elif S3_BUCKET_NAME and AWS_REGION:
    S3_BASE_URL = f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com"
else:
    S3_BASE_URL = None

S3_CONFIGURED = bool(AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY and S3_BUCKET_NAME)

if S3_CONFIGURED:
    logger.info(f"S3 Base URL configured: {S3_BASE_URL}")
elif IS_PRODUCTION:
    logger.warning("S3 not configured - uploaded files will be kept on local disk")
else:
    logger.info("S3 not configured - using local storage")

# Local file storage (used when S3 is not configured)
LOCAL_FILES_BASE_URL = os.getenv("LOCAL_FILES_BASE_URL", "/files")

# Print startup configuration
logger.info(f"Starting application in {ENV} mode")
logger.info(f"API Version: {API_VERSION}")
logger.info(f"Data Directory: {DATA_DIR}")
logger.info(f"CORS Origins: {CORS_ORIGINS}")
