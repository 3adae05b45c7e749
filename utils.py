import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name="NetworkSim", level=logging.INFO):
    """
    Returns a named logger with a single console handler attached.
    Calling it again for the same name does not stack handlers.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


LOGGER_NAMES = (
    "BlackholeAodv",
    "NetworkSim",
    "TrustLogger",
    "GlobalTrust",
    "FlowMonitor",
    "EnhancedBlackholeSimulation",
)


def set_log_level(level, names=LOGGER_NAMES):
    """Sets the same verbosity on every simulation logger."""
    for name in names:
        setup_logger(name).setLevel(level)
