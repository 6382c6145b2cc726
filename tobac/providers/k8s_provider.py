"""Kubernetes API access for resolving a resource's prior state.

DELETE admission requests from older API servers arrive without `oldObject`; the
webhook then reads the live object so its team label can be checked.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict

from tobac.providers.base import ResolveError, ResourceRef

logger = logging.getLogger(__name__)

_dynamic_client = None
_init_lock = threading.Lock()


def _get_dynamic_client():
    """
    Return a cached DynamicClient.

    Config loading (in-cluster or kubeconfig) and client construction happen once.
    """
    global _dynamic_client

    if _dynamic_client is not None:
        return _dynamic_client

    with _init_lock:
        if _dynamic_client is not None:
            return _dynamic_client

        from kubernetes import client, config
        from kubernetes.dynamic import DynamicClient

        try:
            config.load_incluster_config()
            logger.info("Using in-cluster Kubernetes configuration")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Using Kubernetes configuration from kubeconfig")

        _dynamic_client = DynamicClient(client.ApiClient())
        return _dynamic_client


class KubernetesResourceResolver:
    def resolve(self, ref: ResourceRef) -> Dict[str, Any]:
        from kubernetes.client.exceptions import ApiException
        from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError

        api_version = f"{ref.group}/{ref.version}" if ref.group else ref.version
        try:
            dyn = _get_dynamic_client()
            api = dyn.resources.get(api_version=api_version, name=ref.resource)
            if ref.namespace:
                obj = api.get(name=ref.name, namespace=ref.namespace)
            else:
                obj = api.get(name=ref.name)
        except (ApiException, DynamicApiError, ResourceNotFoundError) as e:
            raise ResolveError(f"get {ref.describe()}: {e}") from e
        except Exception as e:
            raise ResolveError(f"get {ref.describe()}: kubernetes client unavailable: {e}") from e

        data = obj.to_dict() if hasattr(obj, "to_dict") else obj
        if not isinstance(data, dict):
            raise ResolveError(f"get {ref.describe()}: unexpected response type {type(data).__name__}")
        return data


def get_resource_resolver() -> KubernetesResourceResolver:
    """Seam for swapping resolver implementations (tests inject fakes)."""
    return KubernetesResourceResolver()
