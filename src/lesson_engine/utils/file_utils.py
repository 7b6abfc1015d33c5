"""
File operation utilities.

JSON read/write for the lesson store and CSV export of schedules.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

import pandas as pd


logger = logging.getLogger(__name__)


def save_json(data: Dict[str, Any], filepath: Path) -> bool:
    """
    Save data to a JSON file.

    The file is written to a sibling temp file first and then moved into
    place, so a crash never leaves a half-written store behind.

    Args:
        data: Dictionary data to save
        filepath: Path to save the JSON file

    Returns:
        True if save successful, False otherwise
    """
    tmp_path = filepath.with_name(filepath.name + ".tmp")
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, filepath)

        logger.debug(f"Saved JSON file: {filepath}")
        return True

    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to save JSON file {filepath}: {e}", exc_info=True)
        return False


def load_json(filepath: Path) -> Optional[Dict[str, Any]]:
    """
    Load data from a JSON file.

    Args:
        filepath: Path to the JSON file

    Returns:
        Loaded data dictionary, or None if the file is missing or invalid
    """
    try:
        if not filepath.exists():
            logger.warning(f"JSON file not found: {filepath}")
            return None

        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        logger.debug(f"Loaded JSON file: {filepath}")
        return data

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in file {filepath}: {e}")
        return None

    except OSError as e:
        logger.error(f"Failed to load JSON file {filepath}: {e}", exc_info=True)
        return None


def save_csv(df: pd.DataFrame, filepath: Path) -> bool:
    """
    Save DataFrame to CSV file.

    Args:
        df: Pandas DataFrame to save
        filepath: Path to save the CSV file

    Returns:
        True if save successful, False otherwise
    """
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(filepath, index=False, encoding='utf-8')

        logger.debug(f"Saved CSV file: {filepath}")
        return True

    except OSError as e:
        logger.error(f"Failed to save CSV file {filepath}: {e}", exc_info=True)
        return False


def generate_filename(prefix: str, extension: str) -> str:
    """
    Generate timestamped filename.

    Examples:
        >>> generate_filename("schedule", "csv")
        'schedule_20240108_093000.csv'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"
