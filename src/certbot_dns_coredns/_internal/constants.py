"""CoreDNS plugin constants."""

SOLVER_NAME = "coredns-solver"
"""Identifier the host uses to route challenges to this solver."""

TXT_RECORD_TTL = 60
"""TTL written into every published TXT record."""

OPERATION_TIMEOUT = 5.0
"""Seconds allowed for all store interactions of a single present or cleanup."""

DEFAULT_NAMESPACE = "default"

ETCD_AUTHENTICATE_PATH = "/v3/auth/authenticate"
ETCD_PUT_PATH = "/v3/kv/put"
ETCD_DELETE_RANGE_PATH = "/v3/kv/deleterange"
