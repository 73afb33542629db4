import logging
import os
from io import StringIO

import yaml

from support import Consts, Functions, ProbeEnv, SingleLineNonEmptyFilter, logger_init, logger_poller, logger_probe

log_stream = StringIO()
log_handler = logging.StreamHandler(log_stream)
log_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
logger_debug = logging.getLogger(__name__)
logger_debug.setLevel(logging.DEBUG)
logger_debug.addHandler(log_handler)


def test_functions_check_local_level():
    assert Functions.setup_log(logger_poller) == logging.INFO
    assert Functions.setup_log(logger_probe) == logging.INFO

    os.environ['POLLER_LOG_LEVEL'] = 'debug'
    assert Functions.setup_log(logger_poller) == logging.DEBUG

    os.environ['PROBE_LOG_LEVEL'] = 'warn'
    assert Functions.setup_log(logger_probe) == logging.WARNING

    os.environ['INIT_LOG_LEVEL'] = 'nonsense'
    assert Functions.log_level(logger_init) == logging.INFO


def test_functions_run_bash():
    result = Functions.run_bash(logger_debug, ["echo", "test run 1"])
    assert result.return_code == 0
    assert result.stdout == "test run 1\n"
    assert not result.timed_out


def test_functions_run_bash_string_is_split_not_shelled():
    result = Functions.run_bash(logger_debug, "echo 'a | b'")
    assert result.stdout == "a | b\n"


def test_functions_run_bash_logs_output():
    try:
        Functions.run_bash(logger_debug, ["echo", "logged line"], log_output=True)
        assert "DEBUG - logged line" in log_stream.getvalue()
    finally:
        log_stream.truncate(0)
        log_stream.seek(0)


def test_functions_run_bash_failure():
    result = Functions.run_bash(logger_debug, ["bash", "-c", "echo oops >&2; exit 3"])
    assert result.return_code == 3
    assert result.stderr == "oops\n"
    assert result.output == "oops\n"


def test_functions_run_bash_not_started():
    result = Functions.run_bash(logger_debug, ["/nonexistent/binary"])
    assert result.return_code == Functions.NOT_STARTED


def test_functions_run_bash_timeout_kills_tree():
    result = Functions.run_bash(logger_debug, ["bash", "-c", "sleep 30 & sleep 30; echo done"], timeout=0.5)
    assert result.timed_out
    assert "done" not in result.stdout


def test_single_line_filter():
    record = logging.LogRecord("POLLER", logging.INFO, __file__, 1, "line 1\nline 2\n", (), None)
    assert SingleLineNonEmptyFilter().filter(record) == 1
    assert record.getMessage() == "line 1 line 2"

    empty = logging.LogRecord("POLLER", logging.INFO, __file__, 1, "  \n ", (), None)
    assert SingleLineNonEmptyFilter().filter(empty) == 0


def test_single_line_filter_cuts_long_output():
    record = logging.LogRecord("PROBE", logging.DEBUG, __file__, 1, "observed: %s", ("x" * 50,), None)
    assert SingleLineNonEmptyFilter(20).filter(record) == 1
    assert record.getMessage() == "observed: xxxxxxxxxx... [40 more characters]"

    short = logging.LogRecord("PROBE", logging.DEBUG, __file__, 1, "observed: %s", ("ok",), None)
    assert SingleLineNonEmptyFilter(20).filter(short) == 1
    assert short.args == ("ok",)


def test_consts_numeric_settings():
    assert Consts.log_max_length == 2000
    assert Consts.slow_probe_timeout == 30.0

    os.environ["ROUTERPROBE_LOG_MAX_LENGTH"] = "500"
    os.environ["ROUTERPROBE_SLOW_PROBE_TIMEOUT"] = "12.5"
    assert Consts.log_max_length == 500
    assert Consts.slow_probe_timeout == 12.5

    os.environ["ROUTERPROBE_KUBECONFIG"] = ""
    assert Consts.kubeconfig is None


def test_consts_defaults_and_env():
    assert Consts.cli == "oc"
    assert Consts.router_namespace == "openshift-ingress"
    assert Consts.kubeconfig is None
    assert Consts.curl_connect_timeout == 10

    os.environ["ROUTERPROBE_CLI"] = "kubectl"
    assert Consts.cli == "oc"
    Consts.reset()
    assert Consts.cli == "kubectl"


def test_probe_env_empty():
    assert {
        "cli": "oc",
        "kubeconfig": None,
        "router_namespace": "openshift-ingress",
        "haproxy_config": "haproxy.config",
        "curl_connect_timeout": 10,
        "probe_timeout": {"fast": 10.0, "slow": 30.0},
        "logLevel": {
            "poller": Functions.INFO,
            "probe": Functions.INFO,
            "rollout": Functions.INFO,
            "init": Functions.INFO,
        },
    } == ProbeEnv.read()


def test_probe_env_yaml():
    settings = yaml.safe_load("""
cli: kubectl
router_namespace: custom-ingress
curl_connect_timeout: 3
probe_timeout:
  fast: 5
  slow: 20
logLevel:
  poller: DEBUG
""")
    result = ProbeEnv.read(settings)

    assert result["cli"] == "kubectl"
    assert result["router_namespace"] == "custom-ingress"
    assert result["curl_connect_timeout"] == 3
    assert result["probe_timeout"] == {"fast": 5.0, "slow": 20.0}
    assert result["logLevel"]["poller"] == "DEBUG"
    assert Consts.fast_probe_timeout == 5.0


def test_probe_env_load_file(tmp_path):
    config = tmp_path / "routerprobe.yml"
    config.write_text("haproxy_config: /var/lib/haproxy/conf/haproxy.config\n")
    os.environ["ROUTERPROBE_CONFIG"] = str(config)

    assert ProbeEnv.load()["haproxy_config"] == "/var/lib/haproxy/conf/haproxy.config"
