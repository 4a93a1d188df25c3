"""Constants for the Harbor Operator."""

# API Group
API_GROUP = "harbor.harbor-operator.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_CONNECTION = "HarborConnection"
KIND_REGISTRY = "Registry"
KIND_PROJECT = "Project"
KIND_MEMBER = "Member"
KIND_USER = "User"

# Plurals
PLURAL_CONNECTION = "harborconnections"
PLURAL_REGISTRY = "registries"
PLURAL_PROJECT = "projects"
PLURAL_MEMBER = "members"
PLURAL_USER = "users"

# Finalizers
FINALIZER = "harbor.operator/finalizer"

# Controller name used in structured logs
CONTROLLER_NAME = "harbor-operator"

# Status fields holding the Harbor ID of the managed entity
STATUS_ID_REGISTRY = "harborRegistryID"
STATUS_ID_PROJECT = "harborProjectID"
STATUS_ID_MEMBER = "harborMemberID"
STATUS_ID_USER = "harborUserID"

# Default secret keys
DEFAULT_ACCESS_SECRET_KEY = "access_secret"
DEFAULT_PASSWORD_KEY = "password"

# Condition Types (abnormal-true polarity)
COND_RECONCILING = "Reconciling"
COND_STALLED = "Stalled"
COND_READY = "Ready"

# Condition Reasons
REASON_RECONCILING = "Reconciling"
REASON_RECONCILED = "Reconciled"
REASON_CONNECTION_FAILED = "ConnectionFailed"
REASON_SECRET_ERROR = "SecretError"
REASON_INVALID_SPEC = "InvalidSpec"
REASON_ADOPTION_ERROR = "AdoptionError"
REASON_BUILD_REQUEST_ERROR = "BuildRequestError"
REASON_CREATE_ERROR = "CreateError"
REASON_UPDATE_ERROR = "UpdateError"
REASON_DELETE_ERROR = "DeleteError"
REASON_GET_ERROR = "GetError"
REASON_CANCELLED = "Cancelled"
REASON_RECONCILE_ERROR = "ReconcileError"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CREATED = "Created"
EVENT_REASON_UPDATED = "Updated"
EVENT_REASON_DELETED = "Deleted"
EVENT_REASON_ADOPTED = "Adopted"
EVENT_REASON_DRIFT_DETECTED = "DriftDetected"
EVENT_REASON_CONNECTION_VERIFIED = "ConnectionVerified"

# Harbor API
HARBOR_API_PREFIX = "/api/v2.0"
HARBOR_PAGE_SIZE = 100

# Harbor member roles
MEMBER_ROLES = {
    "admin": 1,
    "developer": 2,
    "guest": 3,
    "maintainer": 4,
    "limited-guest": 5,
}

# Harbor member entity types as returned by the members API
ENTITY_TYPE_USER = "u"
ENTITY_TYPE_GROUP = "g"
