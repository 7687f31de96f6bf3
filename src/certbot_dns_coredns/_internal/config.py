"""Solver configuration decoding and validation."""
import json
import logging
from typing import Any
from typing import Optional
from typing import Union

import josepy as jose

from certbot_dns_coredns._internal import errors

logger = logging.getLogger(__name__)


class _StringField(jose.Field):
    """String field, decoding JSON ``null`` to the empty string."""

    def __init__(self, json_name: str) -> None:
        super().__init__(json_name=json_name, default='', omitempty=True)

    def decode(self, value: Any) -> str:
        if value is None:
            return ''
        if not isinstance(value, str):
            raise jose.DeserializationError(
                'Expected a string, got {0}'.format(type(value).__name__))
        return value


class SecretRef(jose.JSONObjectWithFields):
    """Reference to a single key of a named secret.

    An empty ``name`` means no credential is configured.
    """
    name: str = _StringField('name')
    key: str = _StringField('key')


class _SecretRefField(jose.Field):
    """`SecretRef` field, decoding JSON ``null`` to an empty reference."""

    def __init__(self, json_name: str) -> None:
        super().__init__(json_name=json_name, default=SecretRef(), omitempty=True)

    def decode(self, value: Any) -> SecretRef:
        if value is None:
            return SecretRef()
        if not isinstance(value, dict):
            raise jose.DeserializationError(
                'Expected an object, got {0}'.format(type(value).__name__))
        return SecretRef.from_json(value)


class SolverConfig(jose.JSONObjectWithFields):
    """Per-challenge solver configuration.

    Set by users in the webhook/issuer configuration, e.g.::

        {
          "coreDNSPrefix": "/skydns/",
          "etcdEndpoints": "https://etcd-0:2379,https://etcd-1:2379",
          "etcdUsernameRef": {"name": "etcd-credentials", "key": "username"},
          "etcdPasswordRef": {"name": "etcd-credentials", "key": "password"}
        }

    """
    key_prefix: str = _StringField('coreDNSPrefix')
    etcd_endpoints: str = _StringField('etcdEndpoints')
    username_ref: SecretRef = _SecretRefField('etcdUsernameRef')
    password_ref: SecretRef = _SecretRefField('etcdPasswordRef')

    @property
    def endpoints(self) -> tuple[str, ...]:
        """Store endpoints, in configured order."""
        return tuple(url.strip() for url in self.etcd_endpoints.split(',') if url.strip())


def decode(raw_config: Optional[Union[bytes, str]]) -> SolverConfig:
    """Decode a raw JSON configuration payload.

    Absent or empty input decodes to an empty configuration so that
    `validate` can report the first missing field.

    :param raw_config: JSON object, as bytes or text, or ``None``.
    :returns: The decoded configuration.
    :rtype: SolverConfig
    :raises .ConfigDecodeError: if the payload is not a valid configuration object.
    """
    if not raw_config:
        return SolverConfig()

    try:
        jobj = json.loads(raw_config)
    except ValueError as error:
        raise errors.ConfigDecodeError(
            'error decoding solver config: {0}'.format(error)) from error

    if jobj is None:
        return SolverConfig()
    if not isinstance(jobj, dict):
        raise errors.ConfigDecodeError(
            'error decoding solver config: expected a JSON object, got {0}'.format(
                type(jobj).__name__))

    try:
        config = SolverConfig.from_json(jobj)
    except jose.DeserializationError as error:
        raise errors.ConfigDecodeError(
            'error decoding solver config: {0}'.format(error)) from error

    logger.debug('Decoded solver config: prefix %r, endpoints %s, username secret %r, '
                 'password secret %r', config.key_prefix, config.endpoints,
                 config.username_ref.name, config.password_ref.name)
    return config


def validate(config: SolverConfig) -> None:
    """Ensure every field needed for a store operation is set.

    Fields are checked in a fixed order and the first missing one is
    reported.

    :param SolverConfig config: The decoded configuration.
    :raises .ConfigValidationError: naming the first missing field.
    """
    if not config.key_prefix:
        raise errors.ConfigValidationError('coreDNSPrefix', 'no `coreDNSPrefix` provided')
    if not config.etcd_endpoints:
        raise errors.ConfigValidationError('etcdEndpoints', 'no `etcdEndpoints` provided')
    if not config.username_ref.name:
        raise errors.ConfigValidationError('etcdUsernameRef',
                                           'no `etcdUsernameRef` secret provided')
    if not config.password_ref.name:
        raise errors.ConfigValidationError('etcdPasswordRef',
                                           'no `etcdPasswordRef` secret provided')


def load(raw_config: Optional[Union[bytes, str]]) -> SolverConfig:
    """Decode and validate a raw configuration payload."""
    config = decode(raw_config)
    validate(config)
    return config
