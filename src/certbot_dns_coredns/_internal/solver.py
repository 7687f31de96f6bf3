"""DNS-01 challenge solver publishing TXT records into CoreDNS' etcd backend."""
import logging
import threading
from typing import NamedTuple
from typing import Optional
from typing import Union

import kubernetes

from certbot import errors as certbot_errors
from certbot_dns_coredns._internal import config
from certbot_dns_coredns._internal import constants
from certbot_dns_coredns._internal import etcd
from certbot_dns_coredns._internal import secrets

logger = logging.getLogger(__name__)


class ChallengeRequest(NamedTuple):
    """A single DNS-01 challenge handed over by the host.

    :ivar str fqdn: Name the TXT record must be published at.
    :ivar str token: Validation value; becomes the record's text.
    :ivar str namespace: Namespace credentials are looked up in.
    :ivar raw_config: JSON solver configuration, or ``None``.
    """
    fqdn: str
    token: str
    namespace: str
    raw_config: Optional[Union[bytes, str]] = None


class ChallengeSolver:
    """Presents and cleans up DNS-01 challenges for CoreDNS with an etcd backend.

    The solver holds no per-challenge state: every call decodes its own
    configuration, resolves its own credentials and opens its own etcd
    session, so calls may run concurrently.
    """

    def __init__(self, secret_store: Optional[secrets.SecretStore] = None) -> None:
        self._credentials: Optional[secrets.CredentialResolver] = None
        self._stop_event: Optional[threading.Event] = None
        if secret_store is not None:
            self._credentials = secrets.CredentialResolver(secret_store)

    @staticmethod
    def name() -> str:
        """Name the host uses to route challenges to this solver."""
        return constants.SOLVER_NAME

    @property
    def initialized(self) -> bool:
        """Whether the solver can reach its secret store."""
        return self._credentials is not None

    def initialize(self, client_config: Optional[kubernetes.client.Configuration],
                   stop_event: Optional[threading.Event] = None) -> None:
        """
        Prepare the solver for use.

        :param client_config: Kubernetes client configuration used to read
            credential secrets. May be ``None`` if a secret store was given
            to the constructor.
        :param threading.Event stop_event: Once set, the solver refuses
            new challenges.
        :raises certbot.errors.Error: if the solver was already initialized
            from a client configuration.
        """
        if client_config is not None:
            if self.initialized:
                raise certbot_errors.Error('Solver has already been initialized.')
            store = secrets.KubernetesSecretStore.from_client_config(client_config)
            self._credentials = secrets.CredentialResolver(store)
        elif not self.initialized:
            raise certbot_errors.Error('No secret store available to initialize the solver.')

        self._stop_event = stop_event
        logger.debug('Initialized %s', self.name())

    def present(self, request: ChallengeRequest) -> None:
        """
        Publish the TXT record for a challenge.

        Calling this again with the same request rewrites the same value
        under the same key.

        :param ChallengeRequest request: The challenge.
        :raises .SolverError: if the record cannot be published.
        """
        solver_config = self._load_config(request)
        key = etcd.build_key(solver_config.key_prefix, request.fqdn, request.token)
        value = etcd.TXTRecord(text=request.token, ttl=constants.TXT_RECORD_TTL).dumps()
        logger.debug('Presenting %s at etcd key %s', request.fqdn, key)

        with self._etcd_client(solver_config, request.namespace) as client:
            client.put(key, value)

        logger.info('Published TXT record for %s', request.fqdn)

    def cleanup(self, request: ChallengeRequest) -> None:
        """
        Remove the TXT record for a challenge.

        The key is deleted as a prefix. The token is always its last
        segment, so records of other tokens for the same name live under
        other keys and are not affected. Removing an absent record succeeds.

        :param ChallengeRequest request: The challenge.
        :raises .SolverError: if the record cannot be removed.
        """
        solver_config = self._load_config(request)
        key = etcd.build_key(solver_config.key_prefix, request.fqdn, request.token)
        logger.debug('Cleaning up %s at etcd key %s', request.fqdn, key)

        with self._etcd_client(solver_config, request.namespace) as client:
            deleted = client.delete_prefix(key)

        logger.info('Removed %d TXT record(s) for %s', deleted, request.fqdn)

    def _load_config(self, request: ChallengeRequest) -> config.SolverConfig:
        if self._credentials is None:
            raise certbot_errors.Error('Solver has not been initialized.')
        if self._stop_event is not None and self._stop_event.is_set():
            raise certbot_errors.Error('Solver is shutting down.')
        return config.load(request.raw_config)

    def _etcd_client(self, solver_config: config.SolverConfig,
                     namespace: str) -> etcd.EtcdClient:
        if self._credentials is None:
            raise certbot_errors.Error('Solver has not been initialized.')
        username = self._credentials.resolve(solver_config.username_ref, namespace)
        password = self._credentials.resolve(solver_config.password_ref, namespace)
        return etcd.EtcdClient(solver_config.endpoints, username, password,
                               timeout=constants.OPERATION_TIMEOUT)
