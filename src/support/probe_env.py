import os

import yaml

from .consts import Consts
from .functions import Functions


class ProbeEnv:
    @staticmethod
    def read(yaml_config=None):
        """
        Read probe settings from environment variables, optionally merged with a YAML config.

        Args:
            yaml_config: Optional dict loaded from a YAML file. YAML values take precedence.

        Returns:
            Dict with configuration settings
        """
        if yaml_config:
            ProbeEnv._yaml_to_env(yaml_config)
            Consts.reset()

        env_vars = {
            "cli": Consts.cli,
            "kubeconfig": Consts.kubeconfig,
            "router_namespace": Consts.router_namespace,
            "haproxy_config": Consts.haproxy_config,
            "curl_connect_timeout": Consts.curl_connect_timeout,
            "probe_timeout": {
                "fast": Consts.fast_probe_timeout,
                "slow": Consts.slow_probe_timeout,
            },
        }

        env_vars["logLevel"] = {
            "poller": os.getenv("POLLER_LOG_LEVEL") if os.getenv("POLLER_LOG_LEVEL") else Functions.INFO,
            "probe": os.getenv("PROBE_LOG_LEVEL") if os.getenv("PROBE_LOG_LEVEL") else Functions.INFO,
            "rollout": os.getenv("ROLLOUT_LOG_LEVEL") if os.getenv("ROLLOUT_LOG_LEVEL") else Functions.INFO,
            "init": os.getenv("INIT_LOG_LEVEL") if os.getenv("INIT_LOG_LEVEL") else Functions.INFO,
        }

        return env_vars

    @staticmethod
    def load(filename=None):
        """Read settings, merging the YAML file named by `filename` or ROUTERPROBE_CONFIG if any"""
        filename = filename or os.getenv("ROUTERPROBE_CONFIG")
        if not filename:
            return ProbeEnv.read()
        return ProbeEnv.read(yaml.load(Functions.load(filename), Loader=yaml.FullLoader) or {})

    @staticmethod
    def _yaml_to_env(yaml_config):
        """Convert YAML configuration to environment variables"""

        simple_keys = {
            'cli': 'ROUTERPROBE_CLI',
            'kubeconfig': 'ROUTERPROBE_KUBECONFIG',
            'router_namespace': 'ROUTERPROBE_ROUTER_NAMESPACE',
            'haproxy_config': 'ROUTERPROBE_HAPROXY_CONFIG',
            'curl_connect_timeout': 'ROUTERPROBE_CURL_CONNECT_TIMEOUT',
        }
        for key, env_name in simple_keys.items():
            if key in yaml_config:
                os.environ[env_name] = str(yaml_config[key])

        # probe_timeout: {fast: 5, slow: 20}
        if 'probe_timeout' in yaml_config:
            for latency, seconds in yaml_config['probe_timeout'].items():
                os.environ[f'ROUTERPROBE_{latency.upper()}_PROBE_TIMEOUT'] = str(seconds)

        if 'logLevel' in yaml_config:
            for source, level in yaml_config['logLevel'].items():
                os.environ[source.upper() + '_LOG_LEVEL'] = str(level)
