from support import ClusterCli

from .interface import CommandProbe


class FieldQueryProbe(CommandProbe):
    """`<cli> get -n <ns> <resource> -o=jsonpath=<expr>`, e.g. a route's Admitted status"""

    def __init__(self, namespace, resource, jsonpath, label=None, cli=None):
        """
        Args:
            namespace: Namespace of the resource
            resource: `kind/name`, or a kind when `label` selects the objects
            jsonpath: JSONPath expression, with or without surrounding braces
            label: Optional label selector
        """
        self.namespace = namespace
        self.resource = resource
        self.jsonpath = jsonpath if jsonpath.startswith("{") else "{" + jsonpath + "}"
        self.label = label
        self.cli = cli or ClusterCli()

    @property
    def target(self) -> str:
        return f"{self.namespace}/{self.resource}"

    def command(self) -> list[str]:
        args = ["-n", self.namespace, self.resource]
        if self.label:
            args.extend(["-l", self.label])
        args.append(f"-o=jsonpath={self.jsonpath}")
        return self.cli.command("get", *args)

    def describe(self):
        return f"FieldQueryProbe({self.target} {self.jsonpath})"


class LogsProbe(CommandProbe):
    """Tail of the logs of the pods matching a label"""

    def __init__(self, namespace, label, tail=20, cli=None):
        self.namespace = namespace
        self.label = label
        self.tail = tail
        self.cli = cli or ClusterCli()

    @property
    def target(self) -> str:
        return f"{self.namespace} -l {self.label}"

    def command(self) -> list[str]:
        return self.cli.command("logs", "-n", self.namespace, "-l", self.label, f"--tail={self.tail}")
