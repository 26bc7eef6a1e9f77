"""
PostgreSQL Database Provisioning Controller for Kubernetes

This controller watches Database custom resources (platform.dev.env/v1) and, for
each of them, provisions a dedicated PostgreSQL role, a database owned by that
role, and a Secret describing how to connect to it.

Features:
- Level-triggered reconciliation: every attempt re-probes Kubernetes and PostgreSQL
- Idempotent DDL through existence probes, never IF NOT EXISTS
- Injective, length-bounded role and database naming
- Password generation gated by explicit reset and rotation conditions
- Per-attempt pooled connections with guaranteed release
- Bounded worker pool with per-request single-flight and exponential backoff
- Structured logging with severity levels
- Dry-run mode support
- Prometheus metrics exposure
"""

import os
import sys
import time
import base64
import signal
import string
import hashlib
import logging
import secrets
import threading
import urllib3
import psycopg2
from psycopg2 import sql, pool
from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from prometheus_client import CollectorRegistry, REGISTRY, start_http_server
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from typing import Dict, Iterator, List, Optional, Set
from dataclasses import dataclass, field

# ANSI color codes
BLUE = "\033[94m"
RED = "\033[91m"
WHITE = "\033[97m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RESET = "\033[0m"

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("database-controller")


# ============================================================================
# CONFIGURATION
# ============================================================================

class Config:
    """Controller configuration loaded from environment variables"""

    # Kubernetes settings
    WATCH_NAMESPACE = os.getenv("WATCH_NAMESPACE", "")
    CRD_GROUP = os.getenv("CRD_GROUP", "platform.dev.env")
    CRD_VERSION = os.getenv("CRD_VERSION", "v1")
    CRD_PLURAL = os.getenv("CRD_PLURAL", "databases")
    K8S_REQUEST_TIMEOUT = int(os.getenv("K8S_REQUEST_TIMEOUT", "30"))
    WATCH_TIMEOUT = int(os.getenv("WATCH_TIMEOUT", "300"))

    # PostgreSQL superuser settings
    DB_HOST = os.getenv("DB_HOST", "postgres.default.svc.cluster.local")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "postgres")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASS = os.getenv("DB_PASS", "postgres")
    DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "30000"))

    # Host and port handed out to applications in the credential Secret
    CREDENTIAL_HOST = os.getenv("CREDENTIAL_HOST", DB_HOST)
    CREDENTIAL_PORT = os.getenv("CREDENTIAL_PORT", DB_PORT)

    # Controller settings
    WORKERS = int(os.getenv("WORKERS", "4"))
    SYNC_INTERVAL = int(os.getenv("SYNC_INTERVAL", "300"))
    DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "5"))
    RETRY_BACKOFF_BASE = float(os.getenv("RETRY_BACKOFF_BASE", "2.0"))
    MAX_BACKOFF = float(os.getenv("MAX_BACKOFF", "300"))
    PASSWORD_LENGTH = int(os.getenv("PASSWORD_LENGTH", "32"))
    METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))

    # Connection pool settings
    DB_POOL_MIN_CONN = int(os.getenv("DB_POOL_MIN_CONN", "1"))
    DB_POOL_MAX_CONN = int(os.getenv("DB_POOL_MAX_CONN", "5"))


CONTROLLER_NAME = "database-controller"
DATABASE_KIND = "Database"
DATABASE_TYPE_POSTGRES = "Postgres"
SUPPORTED_DATABASE_TYPES = {DATABASE_TYPE_POSTGRES}

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
ROTATE_PASSWORD_ANNOTATION = f"{Config.CRD_GROUP}/rotate-password"
ROTATION_MARKER_ANNOTATION = f"{Config.CRD_GROUP}/password-rotation"

SECRET_KEY_PREFIX = "database-creds-"
IDENTIFIER_MAX_BYTES = 63
OBJECT_NAME_MAX_LENGTH = 253
HASH_SUFFIX_LENGTH = 10
RESERVED_ROLE_PREFIX = "pg_"

# Letters and digits only, so the password never needs escaping in a DSN or shell
PASSWORD_ALPHABET = string.ascii_letters + string.digits

OUTCOME_CONVERGED = "Converged"
OUTCOME_NOT_FOUND = "NotFound"
OUTCOME_FAILED = "Failed"

PASSWORD_GENERATE = "generate"
PASSWORD_STORED = "stored"
PASSWORD_REMEMBERED = "remembered"

SECRET_CREATE = "create"
SECRET_REPLACE = "replace"

ACTION_CREATE_ROLE = "create-role"
ACTION_SET_PASSWORD = "set-password"
ACTION_CREATE_DATABASE = "create-database"
ACTION_CREATE_EXTENSION = "create-extension"
ACTION_CREATE_SECRET = "create-secret"
ACTION_REPLACE_SECRET = "replace-secret"
ACTION_MARK_PROVISIONED = "mark-provisioned"

TRANSIENT_API_STATUSES = {0, 408, 429}


# ============================================================================
# ERRORS
# ============================================================================

class ReconcileError(Exception):
    """Base class for reconcile failures; `retryable` tells the dispatcher whether to requeue"""

    kind = "ReconcileError"
    retryable = True


class NotFoundError(ReconcileError):
    kind = "NotFound"
    retryable = False


class TransientIOError(ReconcileError):
    kind = "TransientIO"


class ProbeAmbiguousError(ReconcileError):
    kind = "ProbeAmbiguous"


class DDLFailureError(ReconcileError):
    kind = "DDLFailure"


class OwnershipConflictError(DDLFailureError):
    kind = "OwnershipConflict"


class SecretWriteError(ReconcileError):
    kind = "SecretWriteFailure"


class InvalidRequestError(ReconcileError):
    kind = "InvalidRequest"
    retryable = False


class ReconcileCancelled(ReconcileError):
    kind = "Cancelled"


def is_transient_api_error(error: Exception) -> bool:
    """True for Kubernetes API failures worth retrying (network, throttling, server side)"""
    if isinstance(error, ApiException):
        status = error.status or 0
        return status in TRANSIENT_API_STATUSES or status >= 500
    return isinstance(error, (urllib3.exceptions.HTTPError, OSError))


# ============================================================================
# DATA MODELS
# ============================================================================

@dataclass(frozen=True)
class RequestIdentity:
    """Namespace and name of a Database request"""
    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj: dict) -> "RequestIdentity":
        metadata = obj.get("metadata") or {}
        return cls(namespace=metadata["namespace"], name=metadata["name"])

    def __str__(self):
        return f"{self.namespace}/{self.name}"


@dataclass
class DatabaseRequest:
    """Desired state read from a Database custom resource"""
    identity: RequestIdentity
    uid: str
    db_type: str
    extensions: List[str]
    provisioned: Optional[bool] = None
    rotation_token: str = ""

    @classmethod
    def from_object(cls, obj: dict) -> "DatabaseRequest":
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        annotations = metadata.get("annotations") or {}
        return cls(
            identity=RequestIdentity.from_object(obj),
            uid=metadata.get("uid", ""),
            db_type=spec.get("type") or DATABASE_TYPE_POSTGRES,
            extensions=list(spec.get("extensions") or []),
            provisioned=status.get("provisioned"),
            rotation_token=annotations.get(ROTATE_PASSWORD_ANNOTATION, ""),
        )


@dataclass(frozen=True)
class DerivedNames:
    role_name: str
    database_name: str
    secret_key: str


@dataclass(frozen=True)
class PGConfig:
    """Connection settings for the operator's superuser"""
    host: str
    port: int
    database: str
    user: str
    password: str

    @classmethod
    def from_env(cls) -> "PGConfig":
        return cls(
            host=Config.DB_HOST,
            port=int(Config.DB_PORT),
            database=Config.DB_NAME,
            user=Config.DB_USER,
            password=Config.DB_PASS,
        )


@dataclass(frozen=True)
class ConnectionInfo:
    """Host and port written into credential Secrets"""
    host: str
    port: int

    @classmethod
    def from_env(cls) -> "ConnectionInfo":
        return cls(host=Config.CREDENTIAL_HOST, port=int(Config.CREDENTIAL_PORT))


@dataclass
class StoredCredential:
    """Decoded view of an existing credential Secret"""
    data: Dict[str, str]
    rotation_marker: str = ""
    resource_version: Optional[str] = None

    @property
    def password(self) -> Optional[str]:
        return self.data.get("PGPASSWORD") or None

    @classmethod
    def from_secret(cls, secret: client.V1Secret) -> "StoredCredential":
        metadata = secret.metadata or client.V1ObjectMeta()
        annotations = metadata.annotations or {}
        data = {
            key: base64.b64decode(value).decode()
            for key, value in (secret.data or {}).items()
        }
        return cls(
            data=data,
            rotation_marker=annotations.get(ROTATION_MARKER_ANNOTATION, ""),
            resource_version=metadata.resource_version,
        )


@dataclass
class ActualState:
    """Probe results across Kubernetes and PostgreSQL for one request"""
    secret: Optional[StoredCredential]
    role_exists: bool
    database_owner: Optional[str]
    installed_extensions: Set[str] = field(default_factory=set)
    remembered_password: Optional[str] = None

    @property
    def database_exists(self) -> bool:
        return self.database_owner is not None


@dataclass
class ActionPlan:
    """Minimal set of steps that moves the actual state to the desired one"""
    create_role: bool = False
    set_password: bool = False
    password_source: str = PASSWORD_STORED
    create_database: bool = False
    extensions_to_create: List[str] = field(default_factory=list)
    secret_action: Optional[str] = None
    rotation_marker: str = ""
    mark_provisioned: bool = False

    @property
    def is_noop(self) -> bool:
        return not self.describe()

    def describe(self) -> List[str]:
        steps = []
        if self.create_role:
            steps.append(ACTION_CREATE_ROLE)
        if self.set_password:
            steps.append(ACTION_SET_PASSWORD)
        if self.create_database:
            steps.append(ACTION_CREATE_DATABASE)
        steps.extend(f"{ACTION_CREATE_EXTENSION}:{ext}" for ext in self.extensions_to_create)
        if self.secret_action == SECRET_CREATE:
            steps.append(ACTION_CREATE_SECRET)
        elif self.secret_action == SECRET_REPLACE:
            steps.append(ACTION_REPLACE_SECRET)
        if self.mark_provisioned:
            steps.append(ACTION_MARK_PROVISIONED)
        return steps


@dataclass
class ReconcileResult:
    """Outcome of a single reconcile attempt"""
    identity: RequestIdentity
    outcome: str = OUTCOME_FAILED
    actions: List[str] = field(default_factory=list)
    error: Optional[ReconcileError] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def requeue(self) -> bool:
        return self.outcome == OUTCOME_FAILED and self.error is not None and self.error.retryable

    def duration_seconds(self) -> float:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    def to_dict(self) -> dict:
        return {
            'identity': str(self.identity),
            'outcome': self.outcome,
            'actions': list(self.actions),
            'error': f"{self.error.kind}: {self.error}" if self.error else None,
            'requeue': self.requeue,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_seconds': self.duration_seconds()
        }


# ============================================================================
# IDENTITY DERIVER
# ============================================================================

def _hash_suffix(namespace: str, name: str) -> str:
    return hashlib.sha256(f"{namespace}/{name}".encode()).hexdigest()[:HASH_SUFFIX_LENGTH]


def _bounded(value: str, limit: int, separator: str, namespace: str, name: str) -> str:
    """Truncate `value` to `limit` bytes, keeping it unique with a hash of the full identity"""
    if len(value.encode()) <= limit:
        return value
    suffix = separator + _hash_suffix(namespace, name)
    prefix = value.encode()[:limit - len(suffix)].decode(errors="ignore")
    if separator == "-":
        # Object names must not have a label ending in '.' or '-'
        prefix = prefix.rstrip(".-")
    return prefix + suffix


def derive_identity(namespace: str, name: str) -> str:
    """
    Canonical role and database name for a request

    Namespaces and names never contain '_', so "{namespace}-{name}" is
    decodable at the last '-' while the name has no '-', and "{namespace}_{name}"
    is decodable at its only '_' otherwise. The two forms never overlap.
    PostgreSQL reserves role names starting with "pg_"; those get a leading
    '_', which no other form starts with.
    """
    if "-" in name:
        identity = f"{namespace}_{name}"
    else:
        identity = f"{namespace}-{name}"
    if identity.startswith(RESERVED_ROLE_PREFIX):
        identity = "_" + identity
    return _bounded(identity, IDENTIFIER_MAX_BYTES, "_", namespace, name)


def derive_secret_key(namespace: str, name: str) -> str:
    # Secrets are namespaced, so the name alone is unique within the request's namespace
    return _bounded(f"{SECRET_KEY_PREFIX}{name}", OBJECT_NAME_MAX_LENGTH, "-", namespace, name)


def derive_names(namespace: str, name: str) -> DerivedNames:
    identity = derive_identity(namespace, name)
    return DerivedNames(
        role_name=identity,
        database_name=identity,
        secret_key=derive_secret_key(namespace, name),
    )


# ============================================================================
# SECRET MATERIALIZER
# ============================================================================

def generate_password(length: int = Config.PASSWORD_LENGTH) -> str:
    """
    Generate a cryptographically random password

    Args:
        length: Number of characters

    Returns:
        Password drawn from ASCII letters and digits
    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def materialize_secret(names: DerivedNames, connection: ConnectionInfo, password: str) -> Dict[str, str]:
    """Credential payload for a request, keyed by libpq environment variable names"""
    return {
        "PGHOST": connection.host,
        "PGPORT": str(connection.port),
        "PGDATABASE": names.database_name,
        "PGUSER": names.role_name,
        "PGPASSWORD": password,
    }


def build_secret(request: DatabaseRequest, names: DerivedNames, data: Dict[str, str],
                 rotation_marker: str, resource_version: Optional[str] = None) -> client.V1Secret:
    """
    Build the Secret object for a credential payload

    The owner reference lets Kubernetes garbage-collect the Secret together
    with its Database request.
    """
    owner = client.V1OwnerReference(
        api_version=f"{Config.CRD_GROUP}/{Config.CRD_VERSION}",
        kind=DATABASE_KIND,
        name=request.identity.name,
        uid=request.uid,
        controller=True,
        block_owner_deletion=True,
    )
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=names.secret_key,
            namespace=request.identity.namespace,
            labels={MANAGED_BY_LABEL: CONTROLLER_NAME},
            annotations={ROTATION_MARKER_ANNOTATION: rotation_marker},
            owner_references=[owner],
            resource_version=resource_version,
        ),
        type="Opaque",
        data={key: base64.b64encode(value.encode()).decode() for key, value in data.items()},
    )


# ============================================================================
# METRICS (Prometheus-compatible)
# ============================================================================

class Metrics:
    """Simple in-memory metrics for Prometheus exposition"""

    def __init__(self):
        self._lock = threading.Lock()
        self.reconciliation_count = 0
        self.converged_count = 0
        self.not_found_count = 0
        self.error_count = 0
        self.actions_count = 0
        self.databases_managed = 0
        self.last_reconciliation_timestamp = 0
        self.last_error_timestamp = 0

    def record_reconciliation(self, result: ReconcileResult):
        """Record metrics from a reconcile attempt"""
        with self._lock:
            self.reconciliation_count += 1
            self.last_reconciliation_timestamp = time.time()
            self.actions_count += len(result.actions)
            if result.outcome == OUTCOME_CONVERGED:
                self.converged_count += 1
            elif result.outcome == OUTCOME_NOT_FOUND:
                self.not_found_count += 1
            else:
                self.error_count += 1
                self.last_error_timestamp = time.time()

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format"""
        with self._lock:
            return f"""# HELP database_controller_reconciliations_total Total number of reconcile attempts
# TYPE database_controller_reconciliations_total counter
database_controller_reconciliations_total {self.reconciliation_count}

# HELP database_controller_converged_total Reconcile attempts that converged
# TYPE database_controller_converged_total counter
database_controller_converged_total {self.converged_count}

# HELP database_controller_not_found_total Reconcile attempts for deleted requests
# TYPE database_controller_not_found_total counter
database_controller_not_found_total {self.not_found_count}

# HELP database_controller_errors_total Reconcile attempts that failed
# TYPE database_controller_errors_total counter
database_controller_errors_total {self.error_count}

# HELP database_controller_actions_total Provisioning actions applied
# TYPE database_controller_actions_total counter
database_controller_actions_total {self.actions_count}

# HELP database_controller_databases_managed Database requests seen on the last resync
# TYPE database_controller_databases_managed gauge
database_controller_databases_managed {self.databases_managed}

# HELP database_controller_last_reconciliation_timestamp Timestamp of last reconcile attempt
# TYPE database_controller_last_reconciliation_timestamp gauge
database_controller_last_reconciliation_timestamp {self.last_reconciliation_timestamp}

# HELP database_controller_last_error_timestamp Timestamp of last error
# TYPE database_controller_last_error_timestamp gauge
database_controller_last_error_timestamp {self.last_error_timestamp}
"""

    def snapshot(self) -> dict:
        with self._lock:
            return {
                'reconciliations': self.reconciliation_count,
                'converged': self.converged_count,
                'not_found': self.not_found_count,
                'errors': self.error_count,
                'actions': self.actions_count,
                'databases_managed': self.databases_managed,
                'last_reconciliation_timestamp': self.last_reconciliation_timestamp,
                'last_error_timestamp': self.last_error_timestamp,
            }


class MetricsCollector:
    """Exposes a `Metrics` instance through a prometheus_client registry"""

    COUNTERS = [
        ('reconciliations', "Total number of reconcile attempts"),
        ('converged', "Reconcile attempts that converged"),
        ('not_found', "Reconcile attempts for deleted requests"),
        ('errors', "Reconcile attempts that failed"),
        ('actions', "Provisioning actions applied"),
    ]
    GAUGES = [
        ('databases_managed', "Database requests seen on the last resync"),
        ('last_reconciliation_timestamp', "Timestamp of last reconcile attempt"),
        ('last_error_timestamp', "Timestamp of last error"),
    ]

    def __init__(self, metrics: Metrics):
        self.metrics = metrics

    def collect(self):
        snapshot = self.metrics.snapshot()
        for key, documentation in self.COUNTERS:
            yield CounterMetricFamily(f"database_controller_{key}", documentation, value=snapshot[key])
        for key, documentation in self.GAUGES:
            yield GaugeMetricFamily(f"database_controller_{key}", documentation, value=snapshot[key])


def start_metrics_server(metrics: Metrics, port: int, registry: CollectorRegistry = REGISTRY):
    """Register `metrics` with `registry` and serve it on /metrics from a daemon thread"""
    registry.register(MetricsCollector(metrics))
    start_http_server(port, registry=registry)
    logger.info(f"Metrics exposed on :{port}/metrics")


# ============================================================================
# KUBERNETES CLIENT
# ============================================================================

class KubernetesClient:
    """Handles all Kubernetes API interactions"""

    def __init__(self):
        try:
            config.load_incluster_config()
        except config.ConfigException:
            logger.warning("Failed to load in-cluster config, trying local kubeconfig")
            config.load_kube_config()

        self.v1 = client.CoreV1Api()
        self.custom = client.CustomObjectsApi()

    def get_database(self, identity: RequestIdentity) -> Optional[dict]:
        """
        Fetch a Database custom resource

        Returns:
            The object as a dict, or None if it does not exist
        """
        try:
            return self.custom.get_namespaced_custom_object(
                Config.CRD_GROUP, Config.CRD_VERSION, identity.namespace,
                Config.CRD_PLURAL, identity.name,
                _request_timeout=Config.K8S_REQUEST_TIMEOUT
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def list_databases(self) -> List[dict]:
        """List Database resources in the watched namespace, or cluster-wide"""
        if Config.WATCH_NAMESPACE:
            response = self.custom.list_namespaced_custom_object(
                Config.CRD_GROUP, Config.CRD_VERSION, Config.WATCH_NAMESPACE, Config.CRD_PLURAL,
                _request_timeout=Config.K8S_REQUEST_TIMEOUT
            )
        else:
            response = self.custom.list_cluster_custom_object(
                Config.CRD_GROUP, Config.CRD_VERSION, Config.CRD_PLURAL,
                _request_timeout=Config.K8S_REQUEST_TIMEOUT
            )
        return response.get("items", [])

    def watch_databases(self, watcher: watch.Watch) -> Iterator[tuple]:
        """
        Stream (event type, object) pairs for Database resources

        The stream ends when the server-side timeout expires or `watcher.stop()`
        is called; callers restart it.
        """
        if Config.WATCH_NAMESPACE:
            stream = watcher.stream(
                self.custom.list_namespaced_custom_object,
                Config.CRD_GROUP, Config.CRD_VERSION, Config.WATCH_NAMESPACE, Config.CRD_PLURAL,
                timeout_seconds=Config.WATCH_TIMEOUT
            )
        else:
            stream = watcher.stream(
                self.custom.list_cluster_custom_object,
                Config.CRD_GROUP, Config.CRD_VERSION, Config.CRD_PLURAL,
                timeout_seconds=Config.WATCH_TIMEOUT
            )
        for event in stream:
            yield event["type"], event["object"]

    def patch_database_status(self, identity: RequestIdentity, status: dict):
        """Merge-patch the status subresource of a Database"""
        self.custom.patch_namespaced_custom_object_status(
            Config.CRD_GROUP, Config.CRD_VERSION, identity.namespace,
            Config.CRD_PLURAL, identity.name, {"status": status},
            _request_timeout=Config.K8S_REQUEST_TIMEOUT
        )

    def get_secret(self, namespace: str, name: str) -> Optional[client.V1Secret]:
        try:
            return self.v1.read_namespaced_secret(
                name, namespace, _request_timeout=Config.K8S_REQUEST_TIMEOUT
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def create_secret(self, namespace: str, body: client.V1Secret):
        self.v1.create_namespaced_secret(
            namespace, body, _request_timeout=Config.K8S_REQUEST_TIMEOUT
        )

    def replace_secret(self, namespace: str, name: str, body: client.V1Secret):
        # body carries the resourceVersion that was probed, so a concurrent edit yields 409
        self.v1.replace_namespaced_secret(
            name, namespace, body, _request_timeout=Config.K8S_REQUEST_TIMEOUT
        )


# ============================================================================
# DATABASE CLIENT
# ============================================================================

class DatabaseClient:
    """Handles all PostgreSQL administrative interactions"""

    def __init__(self, pg_config: PGConfig, connection_pool=None):
        self.pg_config = pg_config
        self.connection_pool = connection_pool
        if self.connection_pool is None:
            self._initialize_pool()

    def _connect_kwargs(self, dbname: str) -> dict:
        return dict(
            host=self.pg_config.host,
            port=self.pg_config.port,
            dbname=dbname,
            user=self.pg_config.user,
            password=self.pg_config.password,
            connect_timeout=Config.DB_CONNECT_TIMEOUT,
            options=f"-c statement_timeout={Config.DB_STATEMENT_TIMEOUT_MS}",
        )

    def _initialize_pool(self):
        """Initialize connection pool with retry logic"""
        for attempt in range(Config.MAX_RETRIES):
            try:
                self.connection_pool = pool.ThreadedConnectionPool(
                    Config.DB_POOL_MIN_CONN,
                    Config.DB_POOL_MAX_CONN,
                    **self._connect_kwargs(self.pg_config.database)
                )
                logger.info("Database connection pool initialized successfully")
                return
            except psycopg2.Error as e:
                sleep_time = Config.RETRY_BACKOFF_BASE ** attempt
                logger.warning(f"Failed to initialize connection pool (attempt {attempt + 1}/{Config.MAX_RETRIES}), "
                               f"retrying in {sleep_time}s: {e}")
                time.sleep(sleep_time)

        raise RuntimeError("Failed to initialize database connection pool")

    @contextmanager
    def connection(self):
        """
        Borrow a pooled autocommit connection for the duration of one attempt

        The connection goes back to the pool on every exit path; a connection
        that broke while borrowed is discarded instead of reused.
        """
        try:
            conn = self.connection_pool.getconn()
        except pool.PoolError as e:
            raise TransientIOError(f"connection pool exhausted: {e}") from e
        except psycopg2.Error as e:
            raise TransientIOError(f"could not connect to PostgreSQL: {e}") from e

        try:
            # CREATE DATABASE cannot run inside a transaction block
            conn.autocommit = True
            yield conn
        finally:
            self.connection_pool.putconn(conn, close=bool(conn.closed))

    @contextmanager
    def database_connection(self, dbname: str):
        """Short-lived autocommit connection to one of the provisioned databases"""
        try:
            conn = psycopg2.connect(**self._connect_kwargs(dbname))
        except psycopg2.Error as e:
            raise TransientIOError(f"could not connect to database {dbname}: {e}") from e

        try:
            conn.autocommit = True
            yield conn
        finally:
            conn.close()

    def _probe(self, conn, query, args, what: str) -> list:
        try:
            with conn.cursor() as cur:
                cur.execute(query, args)
                return cur.fetchall()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise TransientIOError(f"{what} probe failed: {e}") from e
        except psycopg2.Error as e:
            raise ProbeAmbiguousError(f"{what} probe failed: {e}") from e

    def _execute(self, conn, statement, args, what: str):
        try:
            with conn.cursor() as cur:
                cur.execute(statement, args)
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise TransientIOError(f"failed to {what}: {e}") from e
        except psycopg2.Error as e:
            raise DDLFailureError(f"failed to {what}: {e}") from e

    def role_exists(self, conn, role_name: str) -> bool:
        rows = self._probe(
            conn,
            "SELECT rolname FROM pg_catalog.pg_roles WHERE rolname = %s",
            (role_name,),
            f"role {role_name}"
        )
        if not rows:
            return False
        if len(rows) == 1 and tuple(rows[0]) == (role_name,):
            return True
        raise ProbeAmbiguousError(f"unexpected result probing role {role_name}: {rows!r}")

    def database_owner(self, conn, database_name: str) -> Optional[str]:
        """
        Probe a database

        Returns:
            The owning role's name, or None if the database does not exist
        """
        rows = self._probe(
            conn,
            "SELECT datname, pg_catalog.pg_get_userbyid(datdba) "
            "FROM pg_catalog.pg_database WHERE datname = %s",
            (database_name,),
            f"database {database_name}"
        )
        if not rows:
            return None
        if len(rows) != 1 or len(rows[0]) != 2 or rows[0][0] != database_name or not rows[0][1]:
            raise ProbeAmbiguousError(f"unexpected result probing database {database_name}: {rows!r}")
        return rows[0][1]

    def installed_extensions(self, database_name: str) -> Set[str]:
        with self.database_connection(database_name) as conn:
            rows = self._probe(
                conn,
                "SELECT extname FROM pg_catalog.pg_extension",
                None,
                f"extensions of {database_name}"
            )
        if any(len(row) != 1 for row in rows):
            raise ProbeAmbiguousError(f"unexpected result probing extensions of {database_name}: {rows!r}")
        return {row[0] for row in rows}

    def create_role(self, conn, role_name: str, password: str, dry_run: bool = False):
        """
        Create a login role with its initial password

        Args:
            conn: Borrowed connection
            role_name: Name of the role to create
            password: Role password (bound as a parameter, never logged)
            dry_run: If True, only log the action without executing
        """
        if dry_run:
            logger.info(f"[DRY-RUN] Would create role: {role_name}")
            return

        self._execute(
            conn,
            sql.SQL("CREATE ROLE {} WITH LOGIN PASSWORD %s").format(sql.Identifier(role_name)),
            (password,),
            f"create role {role_name}"
        )
        logger.info(f"{WHITE}Created role: {role_name}{RESET}")

    def set_role_password(self, conn, role_name: str, password: str, dry_run: bool = False):
        if dry_run:
            logger.info(f"[DRY-RUN] Would reset password of role: {role_name}")
            return

        self._execute(
            conn,
            sql.SQL("ALTER ROLE {} WITH PASSWORD %s").format(sql.Identifier(role_name)),
            (password,),
            f"set password of role {role_name}"
        )
        logger.info(f"{WHITE}Reset password of role: {role_name}{RESET}")

    def create_database(self, conn, database_name: str, owner: str, dry_run: bool = False):
        if dry_run:
            logger.info(f"[DRY-RUN] Would create database: {database_name} owned by {owner}")
            return

        self._execute(
            conn,
            sql.SQL("CREATE DATABASE {} OWNER {}").format(
                sql.Identifier(database_name),
                sql.Identifier(owner)
            ),
            None,
            f"create database {database_name}"
        )
        logger.info(f"{WHITE}Created database: {database_name} (owner {owner}){RESET}")

    def create_extensions(self, database_name: str, extensions: List[str], dry_run: bool = False):
        """Create extensions inside a provisioned database, in the given order"""
        if dry_run:
            logger.info(f"[DRY-RUN] Would create extensions in {database_name}: {extensions}")
            return

        with self.database_connection(database_name) as conn:
            for extension in extensions:
                self._execute(
                    conn,
                    sql.SQL("CREATE EXTENSION {}").format(sql.Identifier(extension)),
                    None,
                    f"create extension {extension} in {database_name}"
                )
                logger.info(f"  ↳ Created extension {extension} in {database_name}")

    def close(self):
        """Close the connection pool"""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")


# ============================================================================
# PLANNING
# ============================================================================

def plan_actions(request: DatabaseRequest, names: DerivedNames, state: ActualState,
                 connection: ConnectionInfo) -> ActionPlan:
    """
    Compute the steps needed to converge a request

    Pure function of the desired snapshot and the probed state; it never
    talks to Kubernetes or PostgreSQL.

    Raises:
        OwnershipConflictError: the database exists but belongs to another role
    """
    if state.database_exists and state.database_owner != names.role_name:
        raise OwnershipConflictError(
            f"database {names.database_name} is owned by {state.database_owner}, "
            f"expected {names.role_name}"
        )

    plan = ActionPlan()
    secret = state.secret
    stored_password = secret.password if secret else None
    rotation_owed = bool(request.rotation_token) and (
        secret is None or secret.rotation_marker != request.rotation_token
    )
    plan.rotation_marker = request.rotation_token or (secret.rotation_marker if secret else "")

    if not state.role_exists:
        plan.create_role = True
        plan.password_source = PASSWORD_GENERATE
    elif rotation_owed:
        plan.set_password = True
        plan.password_source = PASSWORD_GENERATE
    elif state.remembered_password:
        # Set on the role by an earlier attempt but never persisted, so newer than the Secret
        plan.password_source = PASSWORD_REMEMBERED
    elif stored_password:
        plan.password_source = PASSWORD_STORED
    else:
        plan.set_password = True
        plan.password_source = PASSWORD_GENERATE

    plan.create_database = not state.database_exists
    plan.extensions_to_create = [
        ext for ext in dict.fromkeys(request.extensions)
        if ext not in state.installed_extensions
    ]

    if secret is None:
        plan.secret_action = SECRET_CREATE
    elif plan.password_source != PASSWORD_STORED:
        plan.secret_action = SECRET_REPLACE
    else:
        desired = materialize_secret(names, connection, stored_password)
        current = {key: secret.data.get(key) for key in desired}
        if current != desired:
            plan.secret_action = SECRET_REPLACE

    plan.mark_provisioned = request.provisioned is not True
    return plan


# ============================================================================
# STATUS UPDATER
# ============================================================================

class StatusUpdater:
    """Reflects convergence onto the status subresource of a Database"""

    def __init__(self, k8s_client):
        self.k8s_client = k8s_client

    def mark_provisioned(self, request: DatabaseRequest) -> bool:
        """
        Set status.provisioned to true unless it already is

        Returns:
            True if a patch was sent
        """
        if request.provisioned is True:
            return False
        self.k8s_client.patch_database_status(request.identity, {"provisioned": True})
        return True


# ============================================================================
# RECONCILIATION ENGINE
# ============================================================================

class PasswordLedger:
    """Passwords this process set on roles whose Secret has not been written yet"""

    def __init__(self):
        self._lock = threading.Lock()
        self._passwords: Dict[str, str] = {}

    def remember(self, role_name: str, password: str):
        with self._lock:
            self._passwords[role_name] = password

    def recall(self, role_name: str) -> Optional[str]:
        with self._lock:
            return self._passwords.get(role_name)

    def forget(self, role_name: str):
        with self._lock:
            self._passwords.pop(role_name, None)


class DatabaseReconciler:
    """
    Converges a Database request onto a PostgreSQL role, database and Secret

    Every attempt starts from fresh probes, so an attempt interrupted at any
    step is completed by the next one without replaying what already happened.
    Callers must not run two attempts for the same request concurrently.
    """

    def __init__(self, k8s_client, db_client, connection_info: ConnectionInfo,
                 dry_run: bool = False, password_length: int = Config.PASSWORD_LENGTH):
        self.k8s_client = k8s_client
        self.db_client = db_client
        self.connection_info = connection_info
        self.dry_run = dry_run
        self.password_length = password_length
        self.status_updater = StatusUpdater(k8s_client)
        self.passwords = PasswordLedger()

    def reconcile(self, identity: RequestIdentity,
                  cancel: Optional[threading.Event] = None) -> ReconcileResult:
        """
        Run one reconcile attempt

        Args:
            identity: Request to converge
            cancel: Event that, once set, stops the attempt at the next step

        Returns:
            ReconcileResult; failures are reported in it rather than raised
        """
        result = ReconcileResult(identity=identity, start_time=datetime.now())
        try:
            request = self._load_request(identity)
            if request is None:
                logger.info(f"Database {identity} not found, nothing to do")
                result.outcome = OUTCOME_NOT_FOUND
                return result

            names = derive_names(identity.namespace, identity.name)
            secret = self._probe_secret(identity.namespace, names.secret_key)

            with self.db_client.connection() as conn:
                state = self._probe_database(conn, request, names, secret)
                plan = plan_actions(request, names, state, self.connection_info)
                if plan.is_noop:
                    logger.debug(f"Database {identity} is in sync")
                else:
                    logger.info(f"{YELLOW}Drift detected for {identity}: {', '.join(plan.describe())}{RESET}")
                password = self._apply_role_and_database(conn, names, state, plan, result, cancel)

            self._apply_extensions(names, plan, result, cancel)
            self._apply_secret(request, names, state, plan, password, result, cancel)
            self._apply_status(request, plan, result, cancel)
            result.outcome = OUTCOME_CONVERGED
        except NotFoundError as e:
            logger.info(f"Database {identity} disappeared during reconcile: {e}")
            result.outcome = OUTCOME_NOT_FOUND
        except ReconcileError as e:
            result.outcome = OUTCOME_FAILED
            result.error = e
            logger.error(f"{RED}Reconcile of {identity} failed ({e.kind}): {e}{RESET}")
        finally:
            result.end_time = datetime.now()

        return result

    def _checkpoint(self, cancel: Optional[threading.Event]):
        if cancel is not None and cancel.is_set():
            raise ReconcileCancelled("attempt cancelled before completion")

    def _read_error(self, error: Exception, what: str) -> ReconcileError:
        # A non-transient read failure (e.g. 403) leaves the actual state unknown
        if is_transient_api_error(error):
            return TransientIOError(f"failed to read {what}: {error}")
        return ProbeAmbiguousError(f"failed to read {what}: {error}")

    def _load_request(self, identity: RequestIdentity) -> Optional[DatabaseRequest]:
        try:
            obj = self.k8s_client.get_database(identity)
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            raise self._read_error(e, f"Database {identity}") from e
        if obj is None:
            return None

        request = DatabaseRequest.from_object(obj)
        if request.db_type not in SUPPORTED_DATABASE_TYPES:
            raise InvalidRequestError(f"unsupported database type {request.db_type!r}")
        return request

    def _probe_secret(self, namespace: str, secret_key: str) -> Optional[StoredCredential]:
        try:
            secret = self.k8s_client.get_secret(namespace, secret_key)
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            raise self._read_error(e, f"Secret {namespace}/{secret_key}") from e
        if secret is None:
            return None
        try:
            return StoredCredential.from_secret(secret)
        except (ValueError, TypeError) as e:
            raise ProbeAmbiguousError(f"Secret {namespace}/{secret_key} is not decodable: {e}") from e

    def _probe_database(self, conn, request: DatabaseRequest, names: DerivedNames,
                        secret: Optional[StoredCredential]) -> ActualState:
        role_exists = self.db_client.role_exists(conn, names.role_name)
        owner = self.db_client.database_owner(conn, names.database_name)
        installed = set()
        if owner is not None and request.extensions:
            installed = self.db_client.installed_extensions(names.database_name)
        return ActualState(
            secret=secret,
            role_exists=role_exists,
            database_owner=owner,
            installed_extensions=installed,
            remembered_password=self.passwords.recall(names.role_name) if role_exists else None,
        )

    def _resolve_password(self, plan: ActionPlan, state: ActualState) -> str:
        if plan.password_source == PASSWORD_GENERATE:
            return generate_password(self.password_length)
        if plan.password_source == PASSWORD_REMEMBERED:
            return state.remembered_password
        return state.secret.password

    def _apply_role_and_database(self, conn, names: DerivedNames, state: ActualState,
                                 plan: ActionPlan, result: ReconcileResult,
                                 cancel: Optional[threading.Event]) -> str:
        password = self._resolve_password(plan, state)

        if plan.create_role or plan.set_password:
            self._checkpoint(cancel)
            # Whatever was remembered stops being valid once we touch the role
            self.passwords.forget(names.role_name)
            if plan.create_role:
                self.db_client.create_role(conn, names.role_name, password, dry_run=self.dry_run)
                result.actions.append(ACTION_CREATE_ROLE)
            else:
                self.db_client.set_role_password(conn, names.role_name, password, dry_run=self.dry_run)
                result.actions.append(ACTION_SET_PASSWORD)
            if not self.dry_run:
                self.passwords.remember(names.role_name, password)

        if plan.create_database:
            self._checkpoint(cancel)
            self.db_client.create_database(conn, names.database_name, names.role_name, dry_run=self.dry_run)
            result.actions.append(ACTION_CREATE_DATABASE)

        return password

    def _apply_extensions(self, names: DerivedNames, plan: ActionPlan, result: ReconcileResult,
                          cancel: Optional[threading.Event]):
        if not plan.extensions_to_create:
            return
        self._checkpoint(cancel)
        self.db_client.create_extensions(names.database_name, plan.extensions_to_create, dry_run=self.dry_run)
        result.actions.extend(f"{ACTION_CREATE_EXTENSION}:{ext}" for ext in plan.extensions_to_create)

    def _apply_secret(self, request: DatabaseRequest, names: DerivedNames, state: ActualState,
                      plan: ActionPlan, password: str, result: ReconcileResult,
                      cancel: Optional[threading.Event]):
        if plan.secret_action is None:
            return
        self._checkpoint(cancel)

        namespace = request.identity.namespace
        if self.dry_run:
            logger.info(f"[DRY-RUN] Would {plan.secret_action} Secret {namespace}/{names.secret_key}")
            return

        data = materialize_secret(names, self.connection_info, password)
        try:
            if plan.secret_action == SECRET_CREATE:
                body = build_secret(request, names, data, plan.rotation_marker)
                self.k8s_client.create_secret(namespace, body)
                result.actions.append(ACTION_CREATE_SECRET)
            else:
                body = build_secret(request, names, data, plan.rotation_marker,
                                    resource_version=state.secret.resource_version)
                self.k8s_client.replace_secret(namespace, names.secret_key, body)
                result.actions.append(ACTION_REPLACE_SECRET)
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            raise SecretWriteError(f"failed to {plan.secret_action} Secret {namespace}/{names.secret_key}: {e}") from e

        self.passwords.forget(names.role_name)
        logger.info(f"{WHITE}Wrote credentials to Secret {namespace}/{names.secret_key}{RESET}")

    def _apply_status(self, request: DatabaseRequest, plan: ActionPlan, result: ReconcileResult,
                      cancel: Optional[threading.Event]):
        if not plan.mark_provisioned:
            return
        self._checkpoint(cancel)

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would mark {request.identity} as provisioned")
            return

        try:
            if self.status_updater.mark_provisioned(request):
                result.actions.append(ACTION_MARK_PROVISIONED)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Database {request.identity} was deleted") from e
            raise TransientIOError(f"failed to update status of {request.identity}: {e}") from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise TransientIOError(f"failed to update status of {request.identity}: {e}") from e

        logger.info(f"{GREEN}Database {request.identity} provisioned{RESET}")


# ============================================================================
# DISPATCHER
# ============================================================================

class ReconcileDispatcher:
    """
    Runs reconcile attempts on a bounded worker pool

    At most one attempt per request is in flight; a trigger that arrives while
    an attempt runs is folded into a single follow-up attempt. Retryable
    failures are requeued with exponential backoff.
    """

    def __init__(self, reconciler: DatabaseReconciler, k8s_client, metrics: Metrics,
                 workers: int = Config.WORKERS):
        self.reconciler = reconciler
        self.k8s_client = k8s_client
        self.metrics = metrics
        self.workers = workers
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="reconcile")
        self.stop_event = threading.Event()
        self._lock = threading.Lock()
        self._in_flight: Set[RequestIdentity] = set()
        self._dirty: Set[RequestIdentity] = set()
        self._failures: Dict[RequestIdentity, int] = {}
        self._timers: Dict[RequestIdentity, threading.Timer] = {}
        self._watcher: Optional[watch.Watch] = None

    @staticmethod
    def backoff_delay(failures: int) -> float:
        """Seconds to wait before retrying after `failures` consecutive failures"""
        return min(Config.RETRY_BACKOFF_BASE ** max(failures - 1, 0), Config.MAX_BACKOFF)

    def enqueue(self, identity: RequestIdentity):
        with self._lock:
            if self.stop_event.is_set():
                return
            timer = self._timers.pop(identity, None)
            if timer is not None:
                timer.cancel()
            if identity in self._in_flight:
                self._dirty.add(identity)
                return
            self._in_flight.add(identity)
            self._submit(identity)

    def _submit(self, identity: RequestIdentity):
        self.executor.submit(self._run, identity)

    def _schedule(self, identity: RequestIdentity, delay: float):
        timer = threading.Timer(delay, self.enqueue, args=(identity,))
        timer.daemon = True
        self._timers[identity] = timer
        timer.start()

    def _run(self, identity: RequestIdentity):
        result = None
        try:
            result = self.reconciler.reconcile(identity, cancel=self.stop_event)
            self.metrics.record_reconciliation(result)
            logger.info(f"Reconcile {identity}: {result.outcome}, "
                        f"actions={result.actions or 'none'}, {result.duration_seconds():.2f}s")
        except Exception as e:
            logger.error(f"Unexpected error reconciling {identity}: {e}", exc_info=True)
        finally:
            self._finish(identity, result)

    def _finish(self, identity: RequestIdentity, result: Optional[ReconcileResult]):
        with self._lock:
            self._in_flight.discard(identity)
            rerun = identity in self._dirty
            self._dirty.discard(identity)

            if result is not None and not result.requeue:
                self._failures.pop(identity, None)
            elif not self.stop_event.is_set():
                failures = self._failures.get(identity, 0) + 1
                self._failures[identity] = failures
                if not rerun:
                    delay = self.backoff_delay(failures)
                    logger.warning(f"{YELLOW}Requeueing {identity} in {delay:.1f}s "
                                   f"(failure {failures}){RESET}")
                    self._schedule(identity, delay)

        if rerun:
            self.enqueue(identity)

    def forget(self, identity: RequestIdentity):
        with self._lock:
            self._failures.pop(identity, None)
            timer = self._timers.pop(identity, None)
            if timer is not None:
                timer.cancel()

    def resync_loop(self):
        """Periodically queue every Database so drift is repaired without events"""
        while not self.stop_event.is_set():
            try:
                items = self.k8s_client.list_databases()
                self.metrics.databases_managed = len(items)
                for obj in items:
                    self.enqueue(RequestIdentity.from_object(obj))
                logger.info(f"{BLUE}Resync queued {len(items)} databases{RESET}")
            except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
                logger.error(f"Resync failed: {e}")
            self.stop_event.wait(Config.SYNC_INTERVAL)

    def watch_loop(self):
        """Queue Database requests as they are added or modified"""
        while not self.stop_event.is_set():
            self._watcher = watch.Watch()
            try:
                for event_type, obj in self.k8s_client.watch_databases(self._watcher):
                    if event_type == "ERROR":
                        logger.warning(f"Watch returned an error, restarting: {obj}")
                        break
                    identity = RequestIdentity.from_object(obj)
                    if event_type == "DELETED":
                        # Role and database are left in place; the Secret goes with its owner
                        logger.info(f"Database {identity} deleted")
                        self.forget(identity)
                        continue
                    self.enqueue(identity)
            except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
                logger.warning(f"Watch interrupted, restarting: {e}")
                self.stop_event.wait(Config.RETRY_BACKOFF_BASE)

    def run(self):
        logger.info(f"{GREEN}Dispatcher started (workers={self.workers}){RESET}")
        threads = [
            threading.Thread(target=self.watch_loop, name="watch", daemon=True),
            threading.Thread(target=self.resync_loop, name="resync", daemon=True),
        ]
        for thread in threads:
            thread.start()
        self.stop_event.wait()

    def shutdown(self):
        """Stop triggering, cancel pending retries and drain in-flight attempts"""
        self.stop_event.set()
        if self._watcher is not None:
            self._watcher.stop()
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
        self.executor.shutdown(wait=True)


# ============================================================================
# CONTROLLER
# ============================================================================

class DatabaseController:
    """
    Wires the Kubernetes and PostgreSQL clients into a running controller
    """

    def __init__(self):
        self.k8s_client = KubernetesClient()
        self.db_client = DatabaseClient(PGConfig.from_env())
        self.metrics = Metrics()
        self.reconciler = DatabaseReconciler(
            self.k8s_client,
            self.db_client,
            ConnectionInfo.from_env(),
            dry_run=Config.DRY_RUN,
        )
        self.dispatcher = ReconcileDispatcher(self.reconciler, self.k8s_client, self.metrics)
        logger.info("Database Controller initialized")

    def run(self):
        logger.info(f"{GREEN}Controller started (DRY_RUN={Config.DRY_RUN}){RESET}")
        logger.info(f"Sync interval: {Config.SYNC_INTERVAL}s")
        if Config.METRICS_PORT:
            start_metrics_server(self.metrics, Config.METRICS_PORT)
        self.dispatcher.run()

    def stop(self, *_):
        self.dispatcher.stop_event.set()

    def cleanup(self):
        """Cleanup resources"""
        logger.info("Shutting down controller...")
        self.dispatcher.shutdown()
        self.db_client.close()


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main():
    """Main entry point"""
    controller = None
    try:
        controller = DatabaseController()
        signal.signal(signal.SIGTERM, controller.stop)
        controller.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if controller:
            controller.cleanup()


if __name__ == "__main__":
    main()
