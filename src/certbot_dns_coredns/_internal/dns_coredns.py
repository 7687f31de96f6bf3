"""DNS Authenticator for CoreDNS with an etcd backend."""
import logging
from typing import Any
from typing import Callable
from typing import cast

from certbot import errors
from certbot.plugins import dns_common
from certbot_dns_coredns._internal import constants
from certbot_dns_coredns._internal import secrets
from certbot_dns_coredns._internal.solver import ChallengeRequest
from certbot_dns_coredns._internal.solver import ChallengeSolver

logger = logging.getLogger(__name__)


class Authenticator(dns_common.DNSAuthenticator):
    """DNS Authenticator for CoreDNS

    This Authenticator writes TXT records into the etcd store backing a
    CoreDNS zone to fulfill a dns-01 challenge.
    """

    description = ('Obtain certificates using a DNS TXT record (if you are using CoreDNS with '
                   'an etcd backend for DNS).')
    ttl = constants.TXT_RECORD_TTL

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.solver = ChallengeSolver()

    @classmethod
    def add_parser_arguments(cls, add: Callable[..., None],
                             default_propagation_seconds: int = 30) -> None:
        super().add_parser_arguments(add, default_propagation_seconds)
        add('config', help='CoreDNS solver JSON configuration file.')
        add('namespace', default=constants.DEFAULT_NAMESPACE,
            help='Kubernetes namespace holding the etcd credential secrets.')
        add('kubeconfig', default=None,
            help='Kubernetes client configuration file. When omitted, the in-cluster service '
                 'account is used if available, then the default kubeconfig.')

    def more_info(self) -> str:
        return 'This plugin configures a DNS TXT record to respond to a dns-01 challenge by ' + \
               'writing it into the etcd store backing a CoreDNS zone.'

    def _setup_credentials(self) -> None:
        self._configure_file('config', 'CoreDNS solver configuration file')
        dns_common.validate_file_permissions(cast(str, self.conf('config')))

        if not self.solver.initialized:
            self.solver.initialize(secrets.load_client_config(self.conf('kubeconfig')))

    def _perform(self, _domain: str, validation_name: str, validation: str) -> None:
        self.solver.present(self._challenge_request(validation_name, validation))

    def _cleanup(self, _domain: str, validation_name: str, validation: str) -> None:
        self.solver.cleanup(self._challenge_request(validation_name, validation))

    def _challenge_request(self, validation_name: str, validation: str) -> ChallengeRequest:
        path = cast(str, self.conf('config'))
        try:
            with open(path, 'rb') as f:
                raw_config = f.read()
        except OSError as e:
            raise errors.PluginError(
                'Unable to read CoreDNS solver configuration {0}: {1}'.format(path, e)) from e

        return ChallengeRequest(fqdn=validation_name,
                                token=validation,
                                namespace=self.conf('namespace') or constants.DEFAULT_NAMESPACE,
                                raw_config=raw_config)
