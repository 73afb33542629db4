from .field_query import FieldQueryProbe, LogsProbe
from .http import HTTPProbe
from .interface import CommandProbe, ProbeInterface
from .pod_exec import HaproxyConfigProbe, PodEnvProbe, PodExecProbe
from .shell import CurlProbe, ShellProbe
from .types import Latency, Observation, ProbeError
