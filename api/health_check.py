#!/usr/bin/env python3
"""
Deployment Health Check
Checks if the deployment environment is ready to serve EduShare
"""

import os
import sys
import logging
import importlib
import psutil

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REQUIRED_PACKAGES = [
    "fastapi", "uvicorn", "pydantic", "sqlalchemy", "boto3",
    "jose", "passlib", "python_multipart", "dotenv"
]

PRODUCTION_ENV_VARS = ["JWT_SECRET_KEY", "DATABASE_URL"]
S3_ENV_VARS = ["AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "S3_BUCKET_NAME"]


def check_environment(environ=None):
    """Check deployment environment; returns a list of blocking issues"""
    environ = os.environ if environ is None else environ
    issues = []

    # Check required packages
    for package in REQUIRED_PACKAGES:
        try:
            importlib.import_module(package)
        except ImportError:
            issues.append(f"Missing package: {package}")

    # Check environment variables
    if environ.get("ENV", "development") == "production":
        for var in PRODUCTION_ENV_VARS:
            if not environ.get(var):
                issues.append(f"Missing environment variable: {var}")
        if not (environ.get("LECTURER_PASSWORD") or environ.get("LECTURER_PASSWORD_HASH")):
            issues.append("Missing environment variable: LECTURER_PASSWORD or LECTURER_PASSWORD_HASH")

    missing_s3 = [var for var in S3_ENV_VARS if not environ.get(var)]
    if missing_s3 and len(missing_s3) < len(S3_ENV_VARS):
        issues.append(f"Incomplete S3 configuration, missing: {', '.join(missing_s3)}")
    elif missing_s3:
        logger.warning("S3 not configured, uploaded files will be kept on local disk")

    # Check memory
    memory = psutil.virtual_memory()
    if memory.percent > 95:
        issues.append(f"Critical memory usage: {memory.percent:.1f}%")
    elif memory.percent > 90:
        logger.warning(f"High memory usage: {memory.percent:.1f}%")

    # Check disk space
    disk = psutil.disk_usage('/')
    if disk.percent > 95:
        issues.append(f"Critical disk usage: {disk.percent:.1f}%")

    return issues


def main():
    """Main function"""
    issues = check_environment()

    if issues:
        logger.error("Health check failed:")
        for issue in issues:
            logger.error(f"  - {issue}")
        sys.exit(1)
    else:
        logger.info("Health check passed")
        sys.exit(0)


if __name__ == "__main__":
    main()
