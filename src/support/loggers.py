import logging

from .functions import Functions

logger_init = logging.getLogger(Functions.INIT_LOG)
logger_poller = logging.getLogger(Functions.POLLER_LOG)
logger_probe = logging.getLogger(Functions.PROBE_LOG)
logger_rollout = logging.getLogger(Functions.ROLLOUT_LOG)

Functions.setup_log(logger_init)
Functions.setup_log(logger_poller)
Functions.setup_log(logger_probe)
Functions.setup_log(logger_rollout)
