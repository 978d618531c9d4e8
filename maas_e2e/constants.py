# /*
# Copyright 2026 The Grove Authors.
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

"""Constants for cluster resources, scripts, timeouts, and tiers."""

from __future__ import annotations

# -- Identity provider --
DEFAULT_IDP_NAME = "maas-test-htpasswd"
DEFAULT_NUM_USERS = 10
DEFAULT_BCRYPT_COST = 10
DEFAULT_OAUTH_ROLLOUT_TIMEOUT = 300
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY_SECONDS = 5.0
DEFAULT_BASELINE_ROLE = "view"
DEFAULT_FIXED_PASSWORD_PREFIX = "pass"
USERNAME_PREFIX = "testuser"
RANDOM_PASSWORD_BYTES = 6

HTPASSWD_SECRET_KEY = "htpasswd"
OAUTH_RESOURCE = "oauth"
OAUTH_CLUSTER_NAME = "cluster"
OAUTH_API_VERSION = "config.openshift.io/v1"
OAUTH_DEPLOYMENT = "oauth-openshift"
OAUTH_POD_SELECTOR = "app=oauth-openshift"
OAUTH_STABILIZE_SECONDS = 5
IDP_MAPPING_METHOD = "claim"
IDP_TYPE_HTPASSWD = "HTPasswd"

# -- Namespaces --
NS_OPENSHIFT_CONFIG = "openshift-config"
NS_OPENSHIFT_AUTHENTICATION = "openshift-authentication"
NS_KUADRANT = "kuadrant-system"
NS_WORKLOAD = "llm"

# -- Credential wire format --
CREDENTIAL_SEPARATOR = ","
FIELD_SEPARATOR = ":"

# -- Tiers --
TIER_ENTERPRISE = "enterprise"
TIER_PREMIUM = "premium"
TIER_FREE = "free"
TIER_ORDER = (TIER_ENTERPRISE, TIER_PREMIUM, TIER_FREE)
# Free takes whatever is left.
TIER_SIZES = {
    TIER_ENTERPRISE: 2,
    TIER_PREMIUM: 2,
}
TIER_GROUPS = {
    TIER_ENTERPRISE: "tier-enterprise-users",
    TIER_PREMIUM: "tier-premium-users",
    TIER_FREE: "tier-free-users",
}

# -- Prerequisites --
CLUSTER_VERSIONS_API = "/apis/config.openshift.io/v1/clusterversions"
INGRESS_CONFIG_RESOURCE = "ingresses.config.openshift.io"
MAAS_HOST_PREFIX = "maas"
MAAS_API_PATH = "maas-api"

# -- Platform deployment --
REL_DEPLOY_SCRIPT = "scripts/deploy-rhoai-stable.sh"
DEPLOY_SCRIPT_ARGS = (
    "--operator-type", "odh",
    "--operator-catalog", "quay.io/opendatahub/opendatahub-operator-catalog:latest",
    "--channel", "fast",
)
DSC_RESOURCE = "datasciencecluster"
DSC_NAME = "default-dsc"
AUTHORINO_DEPLOYMENT = "authorino"

# -- Workload --
REL_WORKLOAD_KUSTOMIZE_DIR = "docs/samples/models/simulator/"
WORKLOAD_RESOURCE = "llminferenceservice"
WORKLOAD_NAME = "facebook-opt-125m-simulated"

# -- Validation scripts --
REL_VALIDATE_SCRIPT = "scripts/validate-deployment.sh"
REL_TOKEN_VERIFY_SCRIPT = "scripts/verify-tokens-metadata-logic.sh"
REL_SMOKE_SCRIPT = "test/e2e/smoke.sh"
PROJECT_ROOT_MARKER = ".git"

# -- Timeouts & cooldowns (seconds) --
DEFAULT_PLATFORM_READY_TIMEOUT = 600
DEFAULT_AUTH_READY_TIMEOUT = 600
DEFAULT_WORKLOAD_READY_TIMEOUT = 300
DEFAULT_VALIDATION_RETRY_COOLDOWN = 60
DEFAULT_RATE_LIMIT_COOLDOWN = 120
READINESS_POLL_INTERVAL_SECONDS = 10
OC_COMMAND_TIMEOUT = 30
