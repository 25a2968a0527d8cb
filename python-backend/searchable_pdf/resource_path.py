"""
Resource Path Resolution Utility

Locates a bundled Tesseract installation (bin/tesseract next to the
backend, or next to the executable when frozen) and falls back to the
system Tesseract otherwise.
"""

import os
import shutil
import sys
from pathlib import Path
from typing import Optional, Dict
import logging

logger = logging.getLogger(__name__)

TESSERACT_BINARY = "tesseract.exe" if sys.platform == "win32" else "tesseract"


def get_base_path() -> Path:
    """
    Get the base path for the application.

    Returns:
        The python-backend directory in development, the executable's
        directory when running frozen
    """
    if getattr(sys, 'frozen', False):
        base_path = Path(sys.executable).parent
    else:
        # This file lives in python-backend/searchable_pdf/
        base_path = Path(__file__).parent.parent

    logger.debug(f"Base path resolved to: {base_path}")
    return base_path


def get_tesseract_path() -> Optional[Path]:
    """Get the bundled Tesseract executable, if present"""
    bundled = get_base_path() / "bin" / "tesseract" / TESSERACT_BINARY
    if bundled.exists():
        logger.info(f"Found bundled Tesseract at: {bundled}")
        return bundled
    return None


def get_tessdata_path() -> Optional[Path]:
    """Get the bundled tessdata directory, if present"""
    bundled = get_base_path() / "bin" / "tesseract" / "tessdata"
    if bundled.is_dir():
        return bundled
    return None


def setup_tesseract_environment() -> Dict[str, Optional[str]]:
    """
    Configure the Tesseract executable and TESSDATA_PREFIX.

    Returns:
        Dictionary with:
        - 'tesseract_cmd': bundled executable path, or None for system default
        - 'tessdata_prefix': bundled tessdata path, or None
        - 'mode': 'bundled' or 'system'
    """
    config = {
        'tesseract_cmd': None,
        'tessdata_prefix': None,
        'mode': 'system'
    }

    tesseract_path = get_tesseract_path()
    if tesseract_path is None:
        logger.info("Using system Tesseract (if available)")
        return config

    config['tesseract_cmd'] = str(tesseract_path.absolute())
    config['mode'] = 'bundled'

    tessdata_path = get_tessdata_path()
    if tessdata_path is not None:
        config['tessdata_prefix'] = str(tessdata_path.absolute())
        os.environ['TESSDATA_PREFIX'] = config['tessdata_prefix']
        logger.info(f"Set TESSDATA_PREFIX to: {config['tessdata_prefix']}")
    else:
        logger.warning("Bundled Tesseract found but tessdata directory missing!")

    return config


def verify_tesseract_setup(config: Dict[str, Optional[str]]) -> tuple[bool, str]:
    """
    Verify that Tesseract is usable.

    Args:
        config: Result of setup_tesseract_environment()

    Returns:
        Tuple of (success, message)
    """
    if config['mode'] == 'bundled':
        if not config['tessdata_prefix']:
            return False, "Bundled Tesseract has no tessdata directory"

        traineddata_files = list(Path(config['tessdata_prefix']).glob("*.traineddata"))
        if not traineddata_files:
            return False, f"No .traineddata files found in: {config['tessdata_prefix']}"

        return True, f"Bundled Tesseract configured ({len(traineddata_files)} languages)"

    if shutil.which("tesseract") is None:
        return False, "Tesseract executable not found on PATH"

    return True, "Using system Tesseract"
