# /*
# Copyright 2026 The Mesh Sandbox Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
MANIFESTS_DIR = PACKAGE_DIR / "manifests"


def load_dependencies() -> dict:
    """Load pinned upstream versions from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = PACKAGE_DIR / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Namespaces --
NS_ISTIO_SYSTEM = "istio-system"
NS_METALLB_SYSTEM = "metallb-system"
NS_DEFAULT = "default"

# -- Resource names --
INGRESS_GATEWAY_SERVICE = "istio-ingressgateway"
LABEL_ISTIO_INJECTION = "istio-injection=enabled"
LABEL_METALLB_APP = "app=metallb"
METALLB_POOL_NAME = "kind-pool"
KIND_DOCKER_NETWORK = "kind"

# -- Upstream URLs --
METALLB_MANIFEST_URL = (
    "https://raw.githubusercontent.com/metallb/metallb/{version}/config/manifests/metallb-native.yaml"
)
ISTIO_RAW_URL = "https://raw.githubusercontent.com/istio/istio/{release}/{path}"

# -- Load balancer providers --
LB_PROVIDER_CLOUD_PROVIDER_KIND = "cloud-provider-kind"
LB_PROVIDER_METALLB = "metallb"

# -- Cluster defaults --
DEFAULT_CLUSTER_NAME = "istio-dev"
DEFAULT_KIND_CONFIG = MANIFESTS_DIR / "kind-config.yaml"
DEFAULT_CLUSTER_CREATE_MAX_RETRIES = 1
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10

# -- Load balancer defaults --
DEFAULT_METALLB_READY_TIMEOUT = "120s"
DEFAULT_METALLB_SETTLE_SECONDS = 15
DEFAULT_PID_FILE = Path(".cloud-provider-kind.pid")
DEFAULT_HELPER_LOG_FILE = Path(".cloud-provider-kind.log")
# Offsets into the last /24 of the kind network handed to MetalLB.
METALLB_POOL_FIRST_HOST = 200
METALLB_POOL_LAST_HOST = 250

# -- Mesh defaults --
DEFAULT_ISTIO_CONFIG = MANIFESTS_DIR / "istio-config.yaml"
DEFAULT_ISTIO_READY_TIMEOUT = "300s"

# -- Application defaults --
DEFAULT_PODS_READY_TIMEOUT = "300s"
DEFAULT_LB_MAX_ATTEMPTS = 6
DEFAULT_LB_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_PROBE_PATH = "productpage"
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
DEFAULT_PROBE_MARKER = r"<title>[^<]*</title>"
DOWNLOAD_TIMEOUT_SECONDS = 60

# -- Prerequisites --
BASE_PREREQUISITES = ("kind", "kubectl", "docker")
