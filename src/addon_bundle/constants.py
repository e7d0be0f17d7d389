"""Constants for addon-bundle."""

# Version
TOOL_VERSION = "0.1.0"

# Bundle directory layout (consumed by the downstream loader, do not rename)
IMAGES_DIR = "images"
CHARTS_DIR = "charts"
MANIFESTS_DIR = "manifests"
VERSION_FILE = "VERSION"

# Bundle naming
BUNDLE_SUFFIX = "-addon-bundle"
LATEST_LABEL = "latest"
ARCHIVE_EXT = ".tar.gz"
ARTIFACT_EXT = ".tar"
CHART_PREFIX = "charts__"

# Operator guide written next to the archives
INSTRUCTIONS_FILE = "ADDON-BUNDLES-README.md"

# Lock file guarding an output directory against concurrent runs
LOCK_FILE = ".addon-bundle.lock"

# OCI image layout
OCI_LAYOUT_FILE = "oci-layout"
OCI_INDEX_FILE = "index.json"
OCI_BLOBS_DIR = "blobs"
OCI_LAYOUT_VERSION = "1.0.0"
OCI_SCHEMA_VERSION = 2
HELM_CHART_CONTENT_MEDIA_TYPE = "application/vnd.cncf.helm.chart.content.v1.tar+gzip"

# Image platform requested from the copy tool
DEFAULT_PLATFORM_OS = "linux"
DEFAULT_PLATFORM_ARCH = "amd64"

# Placeholder substituted by the downstream loader
REGISTRY_PLACEHOLDER = "REGISTRY_URL"
REGISTRY_PROJECT = "k0rdent-enterprise"

# External tools
SKOPEO = "skopeo"
HELM = "helm"

# Environment variables
ENV_BUNDLE_VERSION = "BUNDLE_VERSION"
ENV_SELECTION = "ADDON_BUNDLE_SELECTION"
ENV_OUTPUT_DIR = "ADDON_BUNDLE_OUTPUT_DIR"
ENV_CONFIG = "ADDON_BUNDLE_CONFIG"
ENV_CATALOG = "ADDON_BUNDLE_CATALOG"
ENV_TIMEOUT = "ADDON_BUNDLE_TIMEOUT"
