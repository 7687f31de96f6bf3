"""Tests for certbot_dns_coredns._internal.secrets."""
import base64
import sys
import unittest
from unittest import mock

from kubernetes.client.exceptions import ApiException
import pytest
import urllib3

from certbot import errors as certbot_errors
from certbot_dns_coredns._internal import errors
from certbot_dns_coredns._internal.config import SecretRef

NAMESPACE = 'dns'
SECRET_DATA = {'username': b'certbot', 'password': b'hunter2'}


class _FakeSecretStore:

    def __init__(self, secrets):
        self.secrets = secrets
        self.lookups = []

    def get_secret(self, name, namespace):
        self.lookups.append((name, namespace))
        try:
            return self.secrets[(namespace, name)]
        except KeyError:
            raise errors.SecretNotFoundError(name, namespace)


class CredentialResolverTest(unittest.TestCase):

    def setUp(self):
        from certbot_dns_coredns._internal.secrets import CredentialResolver

        self.store = _FakeSecretStore({(NAMESPACE, 'etcd'): SECRET_DATA})
        self.resolver = CredentialResolver(self.store)

    def test_resolve(self):
        assert self.resolver.resolve(SecretRef(name='etcd', key='username'), NAMESPACE) == 'certbot'
        assert self.resolver.resolve(SecretRef(name='etcd', key='password'), NAMESPACE) == 'hunter2'

    def test_empty_name(self):
        assert self.resolver.resolve(SecretRef(name='', key=''), NAMESPACE) == ''
        assert self.store.lookups == []

    def test_missing_key(self):
        with pytest.raises(errors.SecretKeyNotFoundError) as exc_info:
            self.resolver.resolve(SecretRef(name='etcd', key='missing'), NAMESPACE)

        error = exc_info.value
        assert isinstance(error, errors.CredentialLookupError)
        assert (error.key, error.name, error.namespace) == ('missing', 'etcd', NAMESPACE)
        assert str(error) == "key not found 'missing' in secret 'dns/etcd'"

    def test_missing_secret(self):
        with pytest.raises(errors.SecretNotFoundError):
            self.resolver.resolve(SecretRef(name='other', key='username'), NAMESPACE)

    def test_no_caching(self):
        ref = SecretRef(name='etcd', key='password')
        self.resolver.resolve(ref, NAMESPACE)
        self.store.secrets[(NAMESPACE, 'etcd')] = {'password': b'rotated'}

        assert self.resolver.resolve(ref, NAMESPACE) == 'rotated'
        assert len(self.store.lookups) == 2


class KubernetesSecretStoreTest(unittest.TestCase):

    def setUp(self):
        from certbot_dns_coredns._internal.secrets import KubernetesSecretStore

        self.core_api = mock.MagicMock()
        self.store = KubernetesSecretStore(self.core_api)

    def test_get_secret(self):
        self.core_api.read_namespaced_secret.return_value = mock.MagicMock(data={
            key: base64.b64encode(value).decode() for key, value in SECRET_DATA.items()
        })

        assert self.store.get_secret('etcd', NAMESPACE) == SECRET_DATA
        self.core_api.read_namespaced_secret.assert_called_once_with('etcd', NAMESPACE)

    def test_get_secret_without_data(self):
        self.core_api.read_namespaced_secret.return_value = mock.MagicMock(data=None)

        assert self.store.get_secret('etcd', NAMESPACE) == {}

    def test_malformed_data(self):
        self.core_api.read_namespaced_secret.return_value = mock.MagicMock(
            data={'username': 'not base64!'})

        with pytest.raises(errors.CredentialLookupError):
            self.store.get_secret('etcd', NAMESPACE)

    def test_not_found(self):
        self.core_api.read_namespaced_secret.side_effect = ApiException(status=404,
                                                                        reason='Not Found')

        with pytest.raises(errors.SecretNotFoundError) as exc_info:
            self.store.get_secret('etcd', NAMESPACE)
        assert exc_info.value.name == 'etcd'
        assert exc_info.value.namespace == NAMESPACE

    def test_api_error(self):
        self.core_api.read_namespaced_secret.side_effect = ApiException(status=403,
                                                                        reason='Forbidden')

        with pytest.raises(errors.SecretStoreConnectionError) as exc_info:
            self.store.get_secret('etcd', NAMESPACE)
        assert isinstance(exc_info.value, errors.StoreConnectionError)
        assert 'Forbidden' in str(exc_info.value)

    def test_transport_error(self):
        self.core_api.read_namespaced_secret.side_effect = urllib3.exceptions.MaxRetryError(
            None, '/api/v1/namespaces/dns/secrets/etcd')

        with pytest.raises(errors.SecretStoreConnectionError):
            self.store.get_secret('etcd', NAMESPACE)

    @mock.patch('certbot_dns_coredns._internal.secrets.kubernetes.client.ApiClient')
    @mock.patch('certbot_dns_coredns._internal.secrets.kubernetes.client.CoreV1Api')
    def test_from_client_config(self, mock_core_api, mock_api_client):
        from certbot_dns_coredns._internal.secrets import KubernetesSecretStore

        client_config = mock.MagicMock()
        store = KubernetesSecretStore.from_client_config(client_config)

        mock_api_client.assert_called_once_with(client_config)
        mock_core_api.assert_called_once_with(mock_api_client.return_value)
        assert store.core_api is mock_core_api.return_value


@mock.patch('certbot_dns_coredns._internal.secrets.kubernetes.config')
class LoadClientConfigTest(unittest.TestCase):

    @classmethod
    def _call(cls, kubeconfig=None):
        from certbot_dns_coredns._internal.secrets import load_client_config
        return load_client_config(kubeconfig)

    def setUp(self):
        from kubernetes.config import ConfigException
        self.config_exception = ConfigException

    def _prepare(self, mock_config):
        mock_config.ConfigException = self.config_exception

    def test_kubeconfig(self, mock_config):
        self._prepare(mock_config)
        client_config = self._call('/tmp/kubeconfig')

        mock_config.load_kube_config.assert_called_once_with(
            config_file='/tmp/kubeconfig', client_configuration=client_config)
        mock_config.load_incluster_config.assert_not_called()

    def test_in_cluster(self, mock_config):
        self._prepare(mock_config)
        client_config = self._call()

        mock_config.load_incluster_config.assert_called_once_with(
            client_configuration=client_config)
        mock_config.load_kube_config.assert_not_called()

    def test_default_kubeconfig_fallback(self, mock_config):
        self._prepare(mock_config)
        mock_config.load_incluster_config.side_effect = self.config_exception('no service account')

        client_config = self._call()

        mock_config.load_kube_config.assert_called_once_with(client_configuration=client_config)

    def test_no_configuration(self, mock_config):
        self._prepare(mock_config)
        mock_config.load_incluster_config.side_effect = self.config_exception('no service account')
        mock_config.load_kube_config.side_effect = self.config_exception('no kubeconfig')

        with pytest.raises(certbot_errors.PluginError):
            self._call()


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
