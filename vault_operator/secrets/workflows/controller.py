"""Watch VaultSecret resources and feed them to the reconciler."""
import time
import logging
from typing import Any, Callable, Dict, Optional

import urllib3.exceptions
from kubernetes import watch
from kubernetes.client.rest import ApiException

from ..domains.kube_client import KubeClient
from ..domains.models import NamespacedName
from .reconciler import VaultSecretReconciler

logger = logging.getLogger(__name__)

HANDLED_EVENTS = ("ADDED", "MODIFIED")
WATCH_TIMEOUT_SECONDS = 60


class Controller:
    """
    Event loop around VaultSecretReconciler.

    Errors are retried with exponential backoff; a requeue request is honoured
    by reconciling the same key once more straight away.
    """

    def __init__(
        self,
        reconciler: VaultSecretReconciler,
        kube: KubeClient,
        namespace: Optional[str] = None,
        max_retries: int = 5,
        backoff_base: float = 1.0,
        backoff_max: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
        watch_factory: Callable[[], watch.Watch] = watch.Watch,
        watch_timeout: int = WATCH_TIMEOUT_SECONDS,
    ):
        self.reconciler = reconciler
        self.kube = kube
        self.namespace = namespace
        self.max_retries = int(max_retries)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.sleep = sleep
        self.watch_factory = watch_factory
        self.watch_timeout = watch_timeout
        self._stopped = False

    @classmethod
    def from_config(cls, config: Dict[str, Any], reconciler: VaultSecretReconciler,
                    namespace: Optional[str] = None) -> "Controller":
        """Build a controller sharing the reconciler's Kubernetes client."""
        settings = config["reconcile"]
        return cls(
            reconciler=reconciler,
            kube=reconciler.kube,
            namespace=namespace,
            max_retries=settings["max_retries"],
            backoff_base=settings["backoff_base"],
            backoff_max=settings["backoff_max"],
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number attempt (0-based)."""
        return min(self.backoff_base * (2 ** attempt), self.backoff_max)

    def process(self, key: NamespacedName) -> bool:
        """
        Reconcile key until it succeeds or retries run out.

        Returns:
            True if the key converged, False if it was given up on
        """
        failures = 0
        requeued = False
        while True:
            try:
                result = self.reconciler.reconcile(key)
            except Exception as e:
                failures += 1
                if failures >= self.max_retries:
                    logger.error(f"Giving up on VaultSecret {key} after {failures} attempts: {e}")
                    return False
                delay = self.backoff_delay(failures - 1)
                logger.warning(
                    f"Reconciling VaultSecret {key} failed "
                    f"(attempt {failures}/{self.max_retries}), retrying in {delay:.1f}s: {e}"
                )
                self.sleep(delay)
                continue

            if result.requeue and not requeued:
                requeued = True
                logger.debug(f"Requeueing VaultSecret {key}")
                continue
            return True

    def handle_event(self, event: Dict[str, Any]) -> Optional[bool]:
        """Process one watch event; returns None for ignored events."""
        event_type = event.get("type")
        if event_type not in HANDLED_EVENTS:
            logger.debug(f"Ignoring {event_type} event")
            return None

        metadata = (event.get("object") or {}).get("metadata") or {}
        if not metadata.get("namespace") or not metadata.get("name"):
            logger.warning(f"Ignoring {event_type} event without namespace/name")
            return None

        key = NamespacedName(namespace=metadata["namespace"], name=metadata["name"])
        return self.process(key)

    def _stream(self, w: watch.Watch):
        api = self.kube.custom_api
        if self.namespace:
            return w.stream(
                api.list_namespaced_custom_object,
                self.kube.group, self.kube.version, self.namespace, self.kube.plural,
                timeout_seconds=self.watch_timeout,
            )
        return w.stream(
            api.list_cluster_custom_object,
            self.kube.group, self.kube.version, self.kube.plural,
            timeout_seconds=self.watch_timeout,
        )

    def stop(self) -> None:
        self._stopped = True

    def run(self) -> None:
        """Watch VaultSecrets until stop() is called, restarting the watch when it ends."""
        scope = f"namespace {self.namespace}" if self.namespace else "all namespaces"
        logger.info(f"Watching {self.kube.plural}.{self.kube.group}/{self.kube.version} in {scope}")

        failures = 0
        while not self._stopped:
            w = self.watch_factory()
            try:
                for event in self._stream(w):
                    self.handle_event(event)
                    if self._stopped:
                        w.stop()
                        break
                failures = 0
            except (ApiException, urllib3.exceptions.HTTPError) as e:
                failures += 1
                delay = self.backoff_delay(failures - 1)
                reason = f"{e.status} {e.reason}" if isinstance(e, ApiException) else str(e)
                logger.warning(f"Watch failed with {reason}, restarting in {delay:.1f}s")
                self.sleep(delay)

        logger.info("Controller stopped")
