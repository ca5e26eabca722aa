#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging configuration for the CDR Network Analyzer

Core components never touch logging configuration. They report structured
events through an ``event_hook(event, fields)`` callable; ``log_event`` is
the default hook and ``MemoryLogger`` collects events in memory.
"""

import logging
import sys
import threading
from datetime import datetime
from pathlib import Path

LOGGER_NAME = 'CDRNetwork'

WARNING_EVENTS = {'format.default_profile', 'normalize.unknown_account', 'network.duplicate_account'}


def setup_logger(level='INFO', log_dir=None):
    """Setup application logging"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stderr)]
    log_path = None
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_path = Path(log_dir) / f"cdr_network_{datetime.now().strftime('%Y%m%d')}.log"
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(f"Log Level: {level}")
    if log_path:
        logger.debug(f"Log File: {log_path}")
    return logger


def get_logger(name=None):
    """Get a logger instance"""
    return logging.getLogger(name or LOGGER_NAME)


def format_event(event, fields):
    if not fields:
        return event
    details = ', '.join(f"{k}={v}" for k, v in fields.items())
    return f"{event}: {details}"


def log_event(event, fields=None):
    """Default event hook: forward core events to the CDRNetwork logger"""
    logger = get_logger()
    level = logging.WARNING if event in WARNING_EVENTS else logging.DEBUG
    logger.log(level, format_event(event, fields or {}))


def make_emitter(event_hook=None):
    hook = event_hook or log_event

    def emit(event, **fields):
        hook(event, fields)
    return emit


class PerformanceLogger:
    """Context manager for performance logging"""

    def __init__(self, operation_name, logger=None):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info(f"Starting operation: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        if exc_type is None:
            self.logger.info(f"Completed operation: {self.operation_name} in {duration:.2f}s")
        else:
            self.logger.error(f"Failed operation: {self.operation_name} after {duration:.2f}s - {exc_val}")
        return False


class MemoryLogger:
    """Event hook that keeps events in memory"""

    def __init__(self, max_messages=1000):
        self.messages = []
        self.max_messages = max_messages
        self._lock = threading.Lock()

    def __call__(self, event, fields):
        level = 'WARNING' if event in WARNING_EVENTS else 'DEBUG'
        self.add_message(level, event, fields)

    def add_message(self, level, event, fields=None):
        message = {
            'timestamp': datetime.now().strftime('%H:%M:%S'),
            'level': level,
            'event': event,
            'fields': dict(fields or {}),
        }
        # Normalizer threads share one hook
        with self._lock:
            self.messages.append(message)
            if len(self.messages) > self.max_messages:
                del self.messages[:-self.max_messages]

    def events(self, name=None):
        """Recorded events, optionally filtered by event name"""
        if name is None:
            return list(self.messages)
        return [msg for msg in self.messages if msg['event'] == name]

    def get_messages(self, level=None):
        if level is None:
            return self.messages
        return [msg for msg in self.messages if msg['level'] == level]

    def clear(self):
        with self._lock:
            self.messages.clear()

    def to_string(self):
        return '\n'.join(
            f"{msg['timestamp']} - {msg['level']} - {format_event(msg['event'], msg['fields'])}"
            for msg in self.messages
        )
