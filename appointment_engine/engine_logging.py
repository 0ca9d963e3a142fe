"""
Central logging configuration for appointment_engine.

The engine modules only create module-level loggers; applications embedding the
engine call configure_engine_logging() once to pick levels and, if nothing else
has configured logging yet, a console handler.
"""

import logging
import os
from typing import Optional

ENGINE_MODULES = [
    "appointment_engine",
    "appointment_engine.__main__",
    "appointment_engine.calendar_math",
    "appointment_engine.lunar",
    "appointment_engine.occurrence_expander",
    "appointment_engine.series_mutator",
    "appointment_engine.occurrence_cache",
    "appointment_engine.series_store",
    "appointment_engine.rrule_export",
    "appointment_engine.config_manager",
    "appointment_engine.engine_logging",
    "appointment_engine.models",
]


def configure_engine_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for appointment_engine modules.

    Args:
        debug_mode: Whether to enable debug logging for appointment_engine modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        APPOINTMENT_ENGINE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        APPOINTMENT_ENGINE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("APPOINTMENT_ENGINE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("APPOINTMENT_ENGINE_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist so host applications keep their setup
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%H:%M:%S")
        )
        root_logger.addHandler(handler)

    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logging.getLogger(module).setLevel(engine_level)

    if final_debug:
        root_logger.info("Debug logging enabled for appointment_engine modules.")
    else:
        root_logger.debug("Production logging configuration applied to appointment_engine.")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ENGINE_MODULES:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
