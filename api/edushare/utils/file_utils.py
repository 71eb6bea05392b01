import os
import re
import logging

logger = logging.getLogger(__name__)


def sanitize_filename(name: str) -> str:
    """Remove or replace characters that are unsafe in storage paths"""
    name = os.path.basename(name.replace("\\", "/"))
    return re.sub(r'[<>:"/\\|?*\x00-\x1f]', '_', name).strip() or "file"


def ensure_dir(dir_path: str) -> str:
    """Make sure directory exists, create if not"""
    if not dir_path:
        raise ValueError("Directory path cannot be empty")

    dir_path = os.path.abspath(dir_path)
    if not os.path.exists(dir_path):
        os.makedirs(dir_path, exist_ok=True)
        logger.info(f"Created directory: {dir_path}")
    return dir_path


def is_valid_file_type(filename: str, allowed_extensions: set) -> bool:
    """Check if file has an allowed extension"""
    return os.path.splitext(filename)[1].lower() in allowed_extensions
