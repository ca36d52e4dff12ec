"""Constants for the Manila CSI Driver Operator."""

# API Group
API_GROUP = "csi.openshift.io"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"

# Resource Kinds
KIND_MANILA_DRIVER = "ManilaDriver"
PLURAL_MANILA_DRIVER = "maniladrivers"

# The only accepted ManilaDriver name
MANILA_DRIVER_CR_NAME = "cluster"

# Annotations
ANNOTATION_LAST_APPLIED = "manila.csi.openshift.io/last-applied"
ANNOTATION_PASS_REQUESTED = "manila.csi.openshift.io/pass-requested"

# Finalizers
FINALIZER = "finalizer.manila.csi.openshift.io"

# Field Manager
FIELD_MANAGER = "manila-csi-driver-operator"
CONTROLLER_NAME = "maniladriver-controller"

# Namespaces
DRIVER_NAMESPACE = "openshift-manila-csi-driver"
CLOUD_CREDENTIAL_OPERATOR_NAMESPACE = "openshift-cloud-credential-operator"
OPENSHIFT_CONFIG_NAMESPACE = "openshift-config"

# Credentials
CREDENTIALS_REQUEST_NAME = "openshift-manila-csi-driver"
INSTALLER_SECRET_NAME = "installer-cloud-credentials"
CLOUDS_SECRET_KEY = "clouds.yaml"
DRIVER_SECRET_NAME = "csi-manila-secrets"

# CA certificate
CLOUD_PROVIDER_CONFIG_NAME = "cloud-provider-config"
CLOUD_PROVIDER_CA_KEY = "ca-bundle.pem"
CA_CERT_CONFIG_MAP_NAME = "manila-csi-ca-cert"
CA_CERT_KEY = "ca-cert.pem"
CA_CERT_MOUNT_PATH = "/etc/kubernetes/static-pod-resources/configmaps/cloud-config"

# CSI
MANILA_CSI_DRIVER_NAME = "manila.csi.openstack.org"
STORAGE_CLASS_PREFIX = "csi-manila-"
SCC_NAME = "manila-csi-scc"

# Labels
LABEL_APP = "app"
LABEL_COMPONENT = "component"
APP_MANILA_CSI = "openstack-manila-csi"
APP_NFS_CSI = "csi-nodeplugin-nfsplugin"

# Condition Types
COND_READY = "Ready"
COND_CREDENTIALS_AVAILABLE = "CredentialsAvailable"
COND_MANILA_AVAILABLE = "ManilaAvailable"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_INVALID_CONFIGURATION = "InvalidConfiguration"
EVENT_REASON_OBJECT_CREATED = "ObjectCreated"
EVENT_REASON_OBJECT_UPDATED = "ObjectUpdated"
EVENT_REASON_OBJECT_DELETED = "ObjectDeleted"
EVENT_REASON_CREDENTIALS_PENDING = "CredentialsPending"
EVENT_REASON_MANILA_UNAVAILABLE = "ManilaUnavailable"
EVENT_REASON_FINALIZED = "Finalized"
