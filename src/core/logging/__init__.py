"""
Structured logging module.

Import directly from sub-modules:
    from core.logging.setup import get_logger, setup_logging
    from core.logging.context import set_log_context
    from core.logging.utilities import LoggedClass, logged_operation, log_with_context
"""
