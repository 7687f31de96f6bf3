"""Credential lookup through Kubernetes secrets."""
import base64
import binascii
import logging
from typing import Mapping
from typing import Optional
from typing import Protocol

import kubernetes
from kubernetes.client.exceptions import ApiException
import urllib3

from certbot import errors as certbot_errors
from certbot_dns_coredns._internal import errors
from certbot_dns_coredns._internal.config import SecretRef

logger = logging.getLogger(__name__)


class SecretStore(Protocol):
    """Read-only access to named secrets."""

    def get_secret(self, name: str, namespace: str) -> Mapping[str, bytes]:
        """Return the data of secret `name` in `namespace`.

        :raises .SecretNotFoundError: if the secret does not exist.
        :raises .StoreConnectionError: if the secret store cannot be queried.
        """


class KubernetesSecretStore:
    """`SecretStore` backed by the Kubernetes core API.

    Safe to share between threads; every lookup is a fresh API request.
    """

    def __init__(self, core_api: kubernetes.client.CoreV1Api) -> None:
        self.core_api = core_api

    @classmethod
    def from_client_config(
            cls, client_config: kubernetes.client.Configuration) -> 'KubernetesSecretStore':
        """Create a store talking to the cluster described by `client_config`."""
        return cls(kubernetes.client.CoreV1Api(kubernetes.client.ApiClient(client_config)))

    def get_secret(self, name: str, namespace: str) -> Mapping[str, bytes]:
        try:
            secret = self.core_api.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                raise errors.SecretNotFoundError(name, namespace) from e
            logger.debug('Error reading secret %s/%s', namespace, name, exc_info=True)
            raise errors.SecretStoreConnectionError(
                "Unable to read secret '{0}/{1}': {2} {3}".format(
                    namespace, name, e.status, e.reason)) from e
        except urllib3.exceptions.HTTPError as e:
            logger.debug('Error reading secret %s/%s', namespace, name, exc_info=True)
            raise errors.SecretStoreConnectionError(
                'Unable to reach the Kubernetes API: {0}'.format(e)) from e

        try:
            return {key: base64.b64decode(value) for key, value in (secret.data or {}).items()}
        except binascii.Error as e:
            raise errors.CredentialLookupError(
                "Secret '{0}/{1}' holds malformed data: {2}".format(namespace, name, e)) from e


def load_client_config(kubeconfig: Optional[str] = None) -> kubernetes.client.Configuration:
    """
    Load the Kubernetes client configuration.

    :param str kubeconfig: Path to a kubeconfig file. When omitted the
        in-cluster service account is used, falling back to the default
        kubeconfig location.
    :returns: The client configuration.
    :rtype: kubernetes.client.Configuration
    :raises certbot.errors.PluginError: if no usable configuration is found.
    """
    client_config = kubernetes.client.Configuration()
    try:
        if kubeconfig:
            kubernetes.config.load_kube_config(config_file=kubeconfig,
                                               client_configuration=client_config)
        else:
            try:
                kubernetes.config.load_incluster_config(client_configuration=client_config)
            except kubernetes.config.ConfigException:
                logger.debug('Not running in a cluster, using the default kubeconfig')
                kubernetes.config.load_kube_config(client_configuration=client_config)
    except (kubernetes.config.ConfigException, OSError) as e:
        raise certbot_errors.PluginError(
            'Unable to load Kubernetes client configuration: {0}'.format(e)) from e
    return client_config


class CredentialResolver:
    """Resolves `SecretRef` values to plaintext credentials.

    Nothing is cached: credentials may rotate between calls.
    """

    def __init__(self, store: SecretStore) -> None:
        self.store = store

    def resolve(self, ref: SecretRef, namespace: str) -> str:
        """
        Resolve a single credential.

        :param SecretRef ref: The secret reference. An empty name resolves
            to the empty string without querying the store.
        :param str namespace: The namespace to look the secret up in.
        :returns: The credential.
        :rtype: str
        :raises .CredentialLookupError: if the secret or its key is absent.
        :raises .StoreConnectionError: if the secret store cannot be queried.
        """
        if not ref.name:
            return ''

        data = self.store.get_secret(ref.name, namespace)
        try:
            value = data[ref.key]
        except KeyError:
            raise errors.SecretKeyNotFoundError(ref.key, ref.name, namespace)

        logger.debug('Resolved key %r of secret %s/%s', ref.key, namespace, ref.name)
        return value.decode('utf-8')
