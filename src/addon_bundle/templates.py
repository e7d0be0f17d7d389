"""Static text rendered into bundles and next to them.

Manifest templates produce Kubernetes YAML whose image references use the
``REGISTRY_URL`` placeholder; the downstream loader substitutes the real
registry when the bundle is installed.
"""

from typing import Callable, Dict, Sequence

from .catalog import AddonCatalog, ImageEntry
from .constants import ARCHIVE_EXT, BUNDLE_SUFFIX, LATEST_LABEL, REGISTRY_PLACEHOLDER, REGISTRY_PROJECT
from .errors import CatalogError


def airgap_image_ref(image: ImageEntry) -> str:
    """Image reference as seen from inside the airgapped cluster."""
    return f"{REGISTRY_PLACEHOLDER}/{REGISTRY_PROJECT}/{image.repository_path}"


def create_local_path_manifest(catalog: AddonCatalog) -> str:
    """Generate the Local Path Provisioner manifest set.

    Args:
        catalog: Catalog with images for the ``provisioner`` and ``helper`` roles

    Returns:
        Multi-document YAML with Namespace, ServiceAccount, RBAC, Deployment,
        StorageClass and ConfigMap
    """
    provisioner = airgap_image_ref(catalog.image_for_role("provisioner"))
    helper = airgap_image_ref(catalog.image_for_role("helper"))

    return f'''# Local Path Provisioner - Airgap Ready
# Replace {REGISTRY_PLACEHOLDER} with your registry
apiVersion: v1
kind: Namespace
metadata:
  name: local-path-storage
---
apiVersion: v1
kind: ServiceAccount
metadata:
  name: local-path-provisioner-service-account
  namespace: local-path-storage
imagePullSecrets:
- name: registry-credentials
---
apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  name: local-path-provisioner-role
  namespace: local-path-storage
rules:
- apiGroups: [""]
  resources: ["pods"]
  verbs: ["get", "list", "watch", "create", "patch", "update", "delete"]
---
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: local-path-provisioner-role
rules:
- apiGroups: [""]
  resources: ["nodes", "persistentvolumeclaims", "configmaps", "pods", "pods/log"]
  verbs: ["get", "list", "watch"]
- apiGroups: [""]
  resources: ["persistentvolumes"]
  verbs: ["get", "list", "watch", "create", "patch", "update", "delete"]
- apiGroups: [""]
  resources: ["events"]
  verbs: ["create", "patch"]
- apiGroups: ["storage.k8s.io"]
  resources: ["storageclasses"]
  verbs: ["get", "list", "watch"]
---
apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  name: local-path-provisioner-bind
  namespace: local-path-storage
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: Role
  name: local-path-provisioner-role
subjects:
- kind: ServiceAccount
  name: local-path-provisioner-service-account
  namespace: local-path-storage
---
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: local-path-provisioner-bind
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: local-path-provisioner-role
subjects:
- kind: ServiceAccount
  name: local-path-provisioner-service-account
  namespace: local-path-storage
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: local-path-provisioner
  namespace: local-path-storage
spec:
  replicas: 1
  selector:
    matchLabels:
      app: local-path-provisioner
  template:
    metadata:
      labels:
        app: local-path-provisioner
    spec:
      serviceAccountName: local-path-provisioner-service-account
      containers:
      - name: local-path-provisioner
        image: {provisioner}
        imagePullPolicy: IfNotPresent
        command:
        - local-path-provisioner
        - --debug
        - start
        - --config
        - /etc/config/config.json
        volumeMounts:
        - name: config-volume
          mountPath: /etc/config/
        env:
        - name: POD_NAMESPACE
          valueFrom:
            fieldRef:
              fieldPath: metadata.namespace
        - name: CONFIG_MOUNT_PATH
          value: /etc/config/
      volumes:
      - name: config-volume
        configMap:
          name: local-path-config
      imagePullSecrets:
      - name: registry-credentials
---
apiVersion: storage.k8s.io/v1
kind: StorageClass
metadata:
  name: local-path
provisioner: rancher.io/local-path
volumeBindingMode: WaitForFirstConsumer
reclaimPolicy: Delete
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: local-path-config
  namespace: local-path-storage
data:
  config.json: |-
    {{
      "nodePathMap": [{{
        "node": "DEFAULT_PATH_FOR_NON_LISTED_NODES",
        "paths": ["/opt/local-path-provisioner"]
      }}]
    }}
  setup: |-
    #!/bin/sh
    set -eu
    mkdir -m 0777 -p "$VOL_DIR"
  teardown: |-
    #!/bin/sh
    set -eu
    rm -rf "$VOL_DIR"
  helperPod.yaml: |-
    apiVersion: v1
    kind: Pod
    metadata:
      name: helper-pod
    spec:
      priorityClassName: system-node-critical
      tolerations:
      - key: node.kubernetes.io/disk-pressure
        operator: Exists
        effect: NoSchedule
      containers:
      - name: helper-pod
        image: {helper}
        imagePullPolicy: IfNotPresent
'''


MANIFEST_TEMPLATES: Dict[str, Callable[[AddonCatalog], str]] = {
    "local-path-provisioner": create_local_path_manifest,
}


def render_manifest(catalog: AddonCatalog) -> str:
    """Render the manifest template named by the catalog.

    Raises:
        CatalogError: If the catalog has no manifest or names an unknown template
    """
    if catalog.manifest is None:
        raise CatalogError(f"Addon '{catalog.name}' has no manifest")
    template = MANIFEST_TEMPLATES.get(catalog.manifest.template)
    if template is None:
        raise CatalogError(
            f"Addon '{catalog.name}' uses unknown manifest template '{catalog.manifest.template}'. "
            f"Available: {', '.join(sorted(MANIFEST_TEMPLATES))}"
        )
    return template(catalog)


def _describe_addon(catalog: AddonCatalog, bundle_version: str) -> str:
    archive = f"{catalog.name}{BUNDLE_SUFFIX}-{bundle_version}{ARCHIVE_EXT}"
    latest = f"{catalog.name}{BUNDLE_SUFFIX}-{LATEST_LABEL}{ARCHIVE_EXT}"
    contents = [f"{len(catalog.images)} images"]
    if catalog.chart:
        contents.append(f"Helm chart {catalog.chart.name} {catalog.chart.version}")
        deploy = "Using Helm after loading"
    elif catalog.manifest:
        contents.append("YAML manifest")
        deploy = f"`kubectl apply -f` after replacing {REGISTRY_PLACEHOLDER}"
    else:
        deploy = "Images only"
    images = "\n".join(f"  - `{image.source_ref}`" for image in catalog.images)
    return f'''### {catalog.title}
- **Bundle**: `{archive}` (also `{latest}`)
- **Contains**: {" + ".join(contents)}
{images}
- **Deploy**: {deploy}
'''


def create_instructions(catalogs: Sequence[AddonCatalog], bundle_version: str) -> str:
    """Generate the operator guide written next to the archives.

    Args:
        catalogs: Addons built in this run
        bundle_version: Version used in archive names

    Returns:
        Markdown content
    """
    sections = "\n".join(_describe_addon(c, bundle_version) for c in catalogs)
    first = catalogs[0].name if catalogs else "velero"
    return f'''# Addon Bundles for Airgapped Clusters

These bundles follow the same structure as the base airgap bundle, containing
both images and charts/manifests.

## Bundle Structure

Each addon bundle contains:
```
<addon>-addon-bundle/
├── VERSION      # bundle_version, bundle_type, created_date, component_versions
├── images/      # Container images as OCI layout tars
│   └── *.tar
├── charts/      # Helm charts as OCI layout tars (if applicable)
│   └── *.tar
└── manifests/   # Raw YAML manifests (if no Helm chart)
    └── *.yaml
```

## Installation Process

1. **Verify and extract the addon bundle**:
   ```bash
   addon-bundle verify {first}{BUNDLE_SUFFIX}-{bundle_version}{ARCHIVE_EXT}
   tar -xzf {first}{BUNDLE_SUFFIX}-{bundle_version}{ARCHIVE_EXT}
   ```

2. **Merge with the base bundle** (optional):
   ```bash
   cp -r {first}{BUNDLE_SUFFIX}/* /path/to/bundle-extracted/
   ```

3. **Load with the standard image and chart loading script** used for the
   base bundle.

## Available Bundles

{sections}
## Key Points

1. These bundles use the same format as the base airgap bundle
2. Images and charts are co-located in the same bundle
3. Registry URL rewriting is automatic for charts
4. Manual manifests need `{REGISTRY_PLACEHOLDER}` replaced before applying
'''
