"""
Logging setup for the lesson engine.

This module provides:
- Console logging plus optional rotating file output
- A single structured log format
- Masking of student contact details that end up in titles or notes
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


EMAIL_PATTERN = re.compile(r'([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})')
PHONE_PATTERN = re.compile(r'\b(\d{2,3})[-. ]?\d{3,4}[-. ]?(\d{4})\b')


def mask_contact_details(text: str) -> str:
    """
    Mask e-mail addresses and phone numbers in free text.

    Examples:
        >>> mask_contact_details("parent: kim@example.com, 010-1234-5678")
        'parent: k***@example.com, 010-****-5678'
    """
    text = EMAIL_PATTERN.sub(r'\1***@\2', text)
    return PHONE_PATTERN.sub(r'\1-****-\2', text)


class ContactDataFilter(logging.Filter):
    """
    Logging filter that masks contact details before output.

    Lesson titles and homework notes are typed by the tutor and sometimes
    hold a parent's phone number or e-mail.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask the formatted message; always lets the record through."""
        message = record.getMessage()
        masked = mask_contact_details(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logger(
    name: str = "lesson_engine",
    level: int = logging.INFO,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Args:
        name: Logger name (default: "lesson_engine", the package root)
        level: Logging level (default: logging.INFO)
        log_file: Optional path to log file for file output

    Returns:
        Configured logger instance

    Examples:
        >>> logger = setup_logger(level=logging.DEBUG, log_file="output/logs/engine.log")
        >>> logger.info("Generation started")
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    contact_filter = ContactDataFilter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(contact_filter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(contact_filter)
        logger.addHandler(file_handler)

    return logger
