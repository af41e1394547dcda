#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import json
import logging

import yaml


LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'


class RobustFileHandler(logging.FileHandler):
    """FileHandler that gracefully handles flush errors on Windows"""

    def flush(self):
        """Flush the stream, catching OSError on Windows file handles"""
        try:
            super().flush()
        except OSError as e:
            # EINVAL from an inconsistent Windows handle is not fatal
            if e.errno != 22:
                raise


def configure_logger(logger,
                     log_file=None,
                     log_format=LOG_FORMAT,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    if isinstance(log_file, str):
        handler = RobustFileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)

    handler.setFormatter(logging.Formatter(log_format))

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def load_config(config_file):
    """Load configuration from a JSON or YAML file

    Args:
        config_file: Path to the config file. ".yaml"/".yml" files are
                     parsed as YAML, anything else as JSON.

    Returns:
        Configuration dictionary (empty if the file is empty)

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file does not contain a mapping
    """
    with open(config_file, 'r', encoding='utf-8') as fp:
        if str(config_file).endswith(('.yaml', '.yml')):
            conf = yaml.safe_load(fp)
        else:
            conf = json.load(fp)

    if conf is None:
        return {}
    if not isinstance(conf, dict):
        raise ValueError(f'{config_file}: top level must be a mapping')
    return conf


def get_log_level(conf):
    """Parse the logging level from a config dictionary

    Reads logging.level (e.g. "info", "debug"). Unknown names fall back
    to INFO.
    """
    level_name = str(conf.get('logging', {}).get('level', 'info')).upper()
    level = getattr(logging, level_name, None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(conf):
    """Configure the root logger from a config dictionary

    Args:
        conf: Configuration dictionary with an optional "logging" section
              containing "level" and "log_file"

    Returns:
        The root logger
    """
    logging_config = conf.get('logging', {})
    return configure_logger(
        logging.getLogger(),
        log_file=logging_config.get('log_file', None),
        log_level=get_log_level(conf),
    )
