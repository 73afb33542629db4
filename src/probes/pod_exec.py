from support import ClusterCli, CommandResult, Consts

from .interface import CommandProbe
from .shell import CurlProbe
from .types import Latency


class PodExecProbe(CommandProbe):
    """Run a command inside a pod with `<cli> exec` (the in-cluster client)"""

    def __init__(self, namespace, pod, command, cli=None, latency=Latency.FAST, combine_stderr=True):
        """
        Args:
            namespace: Namespace of the pod
            pod: Pod name
            command: Argument list run in the container, or a string run through `bash -c`
            cli: ClusterCli to use (defaults to one built from ROUTERPROBE_* settings)
        """
        self.namespace = namespace
        self.pod = pod
        self._command = command
        self.cli = cli or ClusterCli()
        self.latency = latency
        self.combine_stderr = combine_stderr

    @property
    def target(self) -> str:
        return f"{self.namespace}/{self.pod}"

    def container_command(self) -> list[str]:
        if isinstance(self._command, str):
            return ["bash", "-c", self._command]
        return list(self._command)

    def command(self) -> list[str]:
        return self.cli.exec_command(self.namespace, self.pod, self.container_command())

    @classmethod
    def curl(cls, namespace, pod, curl: CurlProbe, cli=None):
        """curl from inside a client pod, e.g. to reach a route through the router service IP"""
        probe = cls(namespace, pod, ["curl"] + curl.arguments(), cli=cli, latency=Latency.SLOW)
        probe.combine_stderr = curl.verbose
        return probe


class HaproxyConfigProbe(PodExecProbe):
    """
    Read haproxy.config from a router pod.

    With `block_start` the observation is only the block that starts with that
    text (see convergence.haproxy.get_block_config), otherwise the whole file.
    """

    def __init__(self, pod, block_start=None, namespace=None, cli=None, config_path=None):
        config_path = config_path or Consts.haproxy_config
        super().__init__(namespace or Consts.router_namespace, pod, ["cat", config_path], cli=cli,
                         combine_stderr=False)
        self.block_start = block_start

    def observed_text(self, result: CommandResult) -> str:
        if self.block_start is None:
            return result.stdout

        from convergence.haproxy import get_block_config
        return get_block_config(result.stdout, self.block_start)

    def describe(self):
        if self.block_start is None:
            return f"HaproxyConfigProbe({self.target})"
        return f"HaproxyConfigProbe({self.target}, {self.block_start!r})"


class PodEnvProbe(PodExecProbe):
    """Environment variables of a pod whose name contains `env_name`, one `NAME=value` per line"""

    def __init__(self, namespace, pod, env_name, cli=None):
        super().__init__(namespace, pod, ["/usr/bin/env"], cli=cli, combine_stderr=False)
        self.env_name = env_name

    def observed_text(self, result: CommandResult) -> str:
        lines = [line for line in result.stdout.splitlines() if self.env_name in line]
        return "\n".join(lines)
