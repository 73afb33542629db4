import time
from dataclasses import dataclass

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from probes import Observation, ProbeError, ProbeInterface
from support import Consts, logger_rollout

from .errors import ConvergenceTimeout, RolloutError, RolloutStuck
from .poller import poll_until
from .predicates import Predicate, Satisfies


@dataclass
class DeploymentObservation(Observation):
    generation: int = 0
    observed_generation: int = 0


class GenerationReached(Predicate):
    """Both metadata.generation and status.observedGeneration reached the target"""

    def __init__(self, target, exact=False):
        self.target = target
        self.exact = exact

    def matches(self, text):
        return False

    def __call__(self, observation):
        if self.exact:
            return observation.generation == self.target and observation.observed_generation == self.target
        return observation.generation >= self.target and observation.observed_generation >= self.target

    def describe(self):
        return f"generation {'==' if self.exact else '>='} {self.target}, observed by the controller"


class DeploymentGenerationProbe(ProbeInterface):
    """Reads generation/observedGeneration. API failures are not retried: they raise RolloutError."""

    def __init__(self, selector, deployment):
        self.selector = selector
        self.deployment = deployment

    @property
    def target(self) -> str:
        return f"{self.selector.namespace}/deployment/{self.deployment}"

    def run(self, timeout=None) -> Observation:
        generation, observed = self.selector.read_generation(self.deployment)
        return DeploymentObservation(f"generation={generation} observedGeneration={observed}", 0, self.target,
                                     generation=generation, observed_generation=observed)


class NewPodProbe(ProbeInterface):
    """Name of the newest ready pod of the deployment's current ReplicaSet, or empty text"""

    def __init__(self, selector, deployment):
        self.selector = selector
        self.deployment = deployment

    @property
    def target(self) -> str:
        return f"{self.selector.namespace}/deployment/{self.deployment}"

    def run(self, timeout=None) -> Observation:
        try:
            pods = self.selector.ready_pods_of_new_replica_set(self.deployment)
        except ApiException as e:
            raise ProbeError(f"listing pods failed: {e.status} {e.reason}", target=self.target) from e
        return Observation(pods[0] if pods else "", 0, self.target)


class RolloutSelector:
    """
    Finds a pod created by the latest rollout of a deployment.

    The generation is confirmed first; only then is the new ReplicaSet resolved
    (via the revision annotation it shares with the deployment) and its pods
    selected by pod-template-hash. A pod of a previous ReplicaSet is never
    returned, however Ready it is.
    """

    GENERATION_TIMEOUT = 30
    GENERATION_INTERVAL = 3
    POD_TIMEOUT = 180
    POD_INTERVAL = 5

    def __init__(self, namespace=None, apps_api=None, core_api=None, deployment_prefix="", clock=None,
                 sleep=None):
        # Only load config if API clients are not provided
        if apps_api is None or core_api is None:
            RolloutSelector.load_config()

        self.namespace = namespace or Consts.router_namespace
        self.apps_api = apps_api or client.AppsV1Api()
        self.core_api = core_api or client.CoreV1Api()
        self.deployment_prefix = deployment_prefix
        self.clock = clock
        self.sleep = sleep

    @classmethod
    def for_router(cls, **kwargs):
        """Selector for the router deployments: `router-<ingresscontroller>` in the router namespace"""
        kwargs.setdefault("namespace", Consts.router_namespace)
        return cls(deployment_prefix=Consts.ROUTER_DEPLOYMENT_PREFIX, **kwargs)

    @staticmethod
    def load_config():
        try:
            config.load_kube_config(config_file=Consts.kubeconfig)
        except config.ConfigException:
            config.load_incluster_config()

    def deployment_name(self, controller_name):
        if self.deployment_prefix and not controller_name.startswith(self.deployment_prefix):
            return self.deployment_prefix + controller_name
        return controller_name

    def read_deployment(self, deployment):
        try:
            return self.apps_api.read_namespaced_deployment(deployment, self.namespace)
        except ApiException as e:
            raise RolloutError(f"Cannot read deployment {self.namespace}/{deployment}: {e.status} {e.reason}") from e

    def read_generation(self, deployment):
        obj = self.read_deployment(deployment)
        generation = obj.metadata.generation or 0
        observed = (obj.status.observed_generation if obj.status else None) or 0
        return generation, observed

    def wait_for_generation(self, controller_name, target_generation, timeout=None, interval=None, exact=False):
        """
        Block until the deployment reports `target_generation`, both in metadata and as observed.

        Raises:
            RolloutError: the deployment cannot be read
            RolloutStuck: the generation was not reached in time
        """
        deployment = self.deployment_name(controller_name)
        try:
            result = poll_until(
                DeploymentGenerationProbe(self, deployment),
                GenerationReached(target_generation, exact=exact),
                timeout or self.GENERATION_TIMEOUT,
                interval or self.GENERATION_INTERVAL,
                clock=self.clock,
                sleep=self.sleep,
            )
        except ConvergenceTimeout as e:
            raise RolloutStuck(f"Deployment {self.namespace}/{deployment} did not reach generation "
                               f"{target_generation}: {e}") from e
        logger_rollout.info(f"Deployment {self.namespace}/{deployment} at {result.text}")
        return result.observation

    def new_replica_set(self, deployment):
        """ReplicaSet owned by the deployment whose revision equals the deployment's, or None"""
        obj = self.read_deployment(deployment)
        revision = (obj.metadata.annotations or {}).get(Consts.REVISION_ANNOTATION)
        if revision is None:
            return None

        match_labels = obj.spec.selector.match_labels or {}
        selector = ",".join(f"{key}={value}" for key, value in match_labels.items())
        replica_sets = self.apps_api.list_namespaced_replica_set(self.namespace, label_selector=selector).items

        for replica_set in replica_sets:
            owners = replica_set.metadata.owner_references or []
            if not any(owner.kind == "Deployment" and owner.name == deployment for owner in owners):
                continue
            if (replica_set.metadata.annotations or {}).get(Consts.REVISION_ANNOTATION) == revision:
                return replica_set
        return None

    @staticmethod
    def is_ready(pod):
        if pod.metadata.deletion_timestamp is not None:
            return False
        if pod.status is None or pod.status.phase != "Running":
            return False
        return any(c.type == "Ready" and c.status == "True" for c in pod.status.conditions or [])

    def ready_pods_of_new_replica_set(self, deployment):
        replica_set = self.new_replica_set(deployment)
        if replica_set is None:
            logger_rollout.debug(f"Deployment {self.namespace}/{deployment}: new ReplicaSet not found yet")
            return []

        pod_hash = (replica_set.metadata.labels or {}).get(Consts.POD_TEMPLATE_HASH_LABEL)
        if not pod_hash:
            return []

        pods = self.core_api.list_namespaced_pod(
            self.namespace, label_selector=f"{Consts.POD_TEMPLATE_HASH_LABEL}={pod_hash}"
        ).items
        ready = [pod for pod in pods if self.is_ready(pod)]
        ready.sort(key=lambda pod: pod.metadata.creation_timestamp.timestamp()
                   if pod.metadata.creation_timestamp else 0, reverse=True)
        logger_rollout.debug(
            f"ReplicaSet {replica_set.metadata.name}: {len(ready)} of {len(pods)} pod(s) ready"
        )
        return [pod.metadata.name for pod in ready]

    def wait_for_rollout_pod(self, controller_name, previous_generation=None, target_generation=None,
                             timeout=None, interval=None, generation_interval=None):
        """
        Return the name of a Ready pod created by the rollout that moved the deployment
        past `previous_generation`.

        Args:
            controller_name: Deployment name, or ingress controller name for a router selector
            previous_generation: Generation before the change; the target is the next one
            target_generation: Explicit target instead of previous_generation + 1
            timeout: Seconds for the whole wait, generation and pod together
            interval: Seconds between pod lookups
            generation_interval: Seconds between generation checks

        Raises:
            RolloutError: the deployment cannot be read
            RolloutStuck: generation or pod did not show up in time
        """
        clock = self.clock or time.monotonic
        timeout = timeout or self.POD_TIMEOUT
        deadline = clock() + timeout

        deployment = self.deployment_name(controller_name)
        if target_generation is None:
            if previous_generation is None:
                target_generation, _ = self.read_generation(deployment)
            else:
                target_generation = previous_generation + 1

        self.wait_for_generation(controller_name, target_generation, deadline - clock(), generation_interval)

        remaining = deadline - clock()
        if remaining <= 0:
            raise RolloutStuck(f"Deployment {self.namespace}/{deployment} reached generation {target_generation} "
                               f"with no time left to find its pod within {timeout}s")

        try:
            result = poll_until(
                NewPodProbe(self, deployment),
                Satisfies(lambda text: bool(text.strip()), "a ready pod of the new ReplicaSet"),
                remaining,
                interval or self.POD_INTERVAL,
                clock=self.clock,
                sleep=self.sleep,
            )
        except ConvergenceTimeout as e:
            raise RolloutStuck(f"No ready pod from the new ReplicaSet of {self.namespace}/{deployment}: {e}") from e

        logger_rollout.info(f"Deployment {self.namespace}/{deployment}: new pod {result.text}")
        return result.text


def ensure_router_deploy_generation_is(ic_name, generation, selector=None):
    """The router deployment of ingress controller `ic_name` is exactly at `generation`"""
    selector = selector or RolloutSelector.for_router()
    return selector.wait_for_generation(ic_name, int(generation), exact=True)


def get_one_new_router_pod_from_rolling_update(ic_name, previous_generation=None, selector=None, timeout=None,
                                               interval=None):
    selector = selector or RolloutSelector.for_router()
    return selector.wait_for_rollout_pod(ic_name, previous_generation, timeout=timeout, interval=interval)
