from .cluster import ClusterCli
from .consts import Consts
from .filter import SingleLineNonEmptyFilter
from .functions import CommandResult, Functions
from .loggers import logger_init, logger_poller, logger_probe, logger_rollout
from .probe_env import ProbeEnv
