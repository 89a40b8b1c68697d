"""
Logging configuration with optional GELF output.
Log records automatically carry the document and signer being processed.
"""

import logging
import json
import socket
from typing import Optional, Dict
from contextvars import ContextVar

# Context variables for signing data
current_document_id: ContextVar[Optional[str]] = ContextVar('current_document_id', default=None)
current_signer_email: ContextVar[Optional[str]] = ContextVar('current_signer_email', default=None)
current_workflow_token: ContextVar[Optional[str]] = ContextVar('current_workflow_token', default=None)


def mask_token(token: Optional[str]) -> Optional[str]:
    """Shorten a workflow token so it never lands in logs in full."""
    if not token:
        return token
    return f"{token[:6]}..."


class GELFFormatter(logging.Formatter):
    """Formatter that creates GELF-compatible JSON messages with signing context."""

    def __init__(self, facility: str = "signflow"):
        super().__init__()
        self.hostname = socket.gethostname()
        self.facility = facility

    def format(self, record):
        gelf_message = {
            "version": "1.1",
            "host": self.hostname,
            "short_message": record.getMessage(),
            "timestamp": record.created,
            "level": self._level_to_gelf(record.levelno),
            "facility": self.facility,
            "_logger": record.name,
            "_filename": record.filename,
            "_line": record.lineno,
            "_thread": record.thread,
        }

        for key, value in get_signing_context().items():
            if value:
                gelf_message[f"_{key}"] = value

        # Extra fields passed as logger.info(..., extra={"document_x": ...})
        for key, value in record.__dict__.items():
            if key.startswith('document_') or key.startswith('signer_') or key.startswith('workflow_'):
                gelf_message[f"_{key}"] = str(value)

        if record.exc_info:
            gelf_message["_exception"] = self.formatException(record.exc_info)

        return json.dumps(gelf_message)

    def _level_to_gelf(self, level):
        """Convert Python log level to GELF level."""
        mapping = {
            logging.DEBUG: 7,
            logging.INFO: 6,
            logging.WARNING: 4,
            logging.ERROR: 3,
            logging.CRITICAL: 2
        }
        return mapping.get(level, 6)


class GELFHandler(logging.Handler):
    """Handler that sends GELF messages to Graylog via UDP."""

    def __init__(self, graylog_host: str, graylog_port: int = 12201):
        super().__init__()
        self.graylog_host = graylog_host
        self.graylog_port = graylog_port
        self.setFormatter(GELFFormatter())

    def emit(self, record):
        try:
            gelf_json = self.format(record)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.sendto(gelf_json.encode('utf-8'), (self.graylog_host, self.graylog_port))
        except Exception:
            self.handleError(record)


def set_signing_context(
    document_id: str = None,
    signer_email: str = None,
    workflow_token: str = None
):
    """Set signing context for subsequent log messages."""
    if document_id is not None:
        current_document_id.set(document_id)
    if signer_email is not None:
        current_signer_email.set(signer_email)
    if workflow_token is not None:
        current_workflow_token.set(mask_token(workflow_token))


def clear_signing_context():
    """Clear all signing context."""
    current_document_id.set(None)
    current_signer_email.set(None)
    current_workflow_token.set(None)


def get_signing_context() -> Dict[str, Optional[str]]:
    """Get current signing context."""
    return {
        "document_id": current_document_id.get(),
        "signer_email": current_signer_email.get(),
        "workflow_token": current_workflow_token.get()
    }


def setup_logging(level: str = "INFO", graylog_host: Optional[str] = None, graylog_port: int = 12201):
    """Install console logging and, when a Graylog host is given, GELF logging."""
    root_logger = logging.getLogger()

    if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(console_handler)

    if graylog_host and not any(isinstance(h, GELFHandler) for h in root_logger.handlers):
        gelf_handler = GELFHandler(graylog_host, graylog_port)
        gelf_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(gelf_handler)

    root_logger.setLevel(level.upper())
    # pyhanko is chatty about font and xref details
    logging.getLogger('pyhanko').setLevel(logging.WARNING)
