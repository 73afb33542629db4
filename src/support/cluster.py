from .consts import Consts
from .functions import CommandResult, Functions
from .loggers import logger_probe


class ClusterCli:
    """
    Thin wrapper around the oc/kubectl binary.

    Every call is built as an argument list, so jsonpath expressions and
    shell snippets reach the binary untouched.
    """

    def __init__(self, binary=None, kubeconfig=None):
        self.binary = binary or Consts.cli
        self.kubeconfig = kubeconfig if kubeconfig is not None else Consts.kubeconfig

    def command(self, verb, *args) -> list[str]:
        command = [self.binary]
        if self.kubeconfig:
            command.append(f"--kubeconfig={self.kubeconfig}")
        command.append(verb)
        command.extend(str(arg) for arg in args)
        return command

    def run(self, verb, *args, timeout=None) -> CommandResult:
        return Functions.run_bash(logger_probe, self.command(verb, *args), timeout=timeout)

    def get_jsonpath(self, namespace, resource, jsonpath, timeout=None) -> CommandResult:
        return self.run("get", "-n", namespace, resource, f"-o=jsonpath={jsonpath}", timeout=timeout)

    def exec_command(self, namespace, pod, command) -> list[str]:
        """Build `exec -n <ns> <pod> -- <command...>`"""
        return self.command("exec", "-n", namespace, pod, "--", *command)

    def __repr__(self):
        return f"ClusterCli({self.binary!r})"
