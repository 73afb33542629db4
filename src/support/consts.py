import os


class setting:
    """
    Class-level property backed by a ROUTERPROBE_* environment variable.

    An unset or empty variable gives `default`; anything else goes through `cast`.
    With `cached=True` the first value sticks until `Consts.reset()`.
    """
    def __init__(self, env_name, default, cast=str, cached=False, doc=None):
        self.env_name = env_name
        self.default = default
        self.cast = cast
        self.cached = cached
        self.__doc__ = doc
        self._value = None

    def __get__(self, obj, owner):
        if self.cached and self._value is not None:
            return self._value

        raw = os.getenv(self.env_name)
        value = self.cast(raw) if raw else self.default
        if self.cached:
            self._value = value
        return value

    def clear(self):
        self._value = None


class Consts:
    """Cluster defaults with lazy resolution from ROUTERPROBE_* environment variables."""

    OPERATOR_NAMESPACE = "openshift-ingress-operator"
    ROUTER_DEPLOYMENT_PREFIX = "router-"
    INGRESS_CONTROLLER_LABEL = "ingresscontroller.operator.openshift.io/deployment-ingresscontroller"
    POD_TEMPLATE_HASH_LABEL = "pod-template-hash"
    REVISION_ANNOTATION = "deployment.kubernetes.io/revision"

    cli = setting("ROUTERPROBE_CLI", "oc", cached=True, doc="CLI binary used for get/exec/logs.")
    kubeconfig = setting("ROUTERPROBE_KUBECONFIG", None, doc="Optional kubeconfig passed to every CLI call.")
    router_namespace = setting("ROUTERPROBE_ROUTER_NAMESPACE", "openshift-ingress",
                               doc="Namespace holding the router deployments.")
    haproxy_config = setting("ROUTERPROBE_HAPROXY_CONFIG", "haproxy.config",
                             doc="Path of the generated HAProxy config inside a router pod.")
    curl_connect_timeout = setting("ROUTERPROBE_CURL_CONNECT_TIMEOUT", 10, int)
    fast_probe_timeout = setting("ROUTERPROBE_FAST_PROBE_TIMEOUT", 10.0, float,
                                 doc="Per-attempt timeout for API reads.")
    slow_probe_timeout = setting("ROUTERPROBE_SLOW_PROBE_TIMEOUT", 30.0, float,
                                 doc="Per-attempt timeout for network curls.")
    log_max_length = setting("ROUTERPROBE_LOG_MAX_LENGTH", 2000, int,
                             doc="Longest log message before probe output is cut.")

    @classmethod
    def reset(cls):
        """Reset cached values to pick up environment variable changes."""
        for value in vars(cls).values():
            if isinstance(value, setting):
                value.clear()
