"""CoreDNS records stored in etcd, reached through the etcd v3 JSON gateway."""
import base64
import json
import logging
import time
from types import TracebackType
from typing import Any
from typing import Optional
from typing import Sequence

import josepy as jose
import requests

from certbot_dns_coredns._internal import constants
from certbot_dns_coredns._internal import errors

logger = logging.getLogger(__name__)

_READ_CHUNK_SIZE = 64


def build_key(prefix: str, fqdn: str, token: str) -> str:
    """Build the etcd key holding the TXT record of one challenge.

    Labels are stored most-significant first, the way CoreDNS' etcd
    plugin lays out its zone data, and the token is the last segment so
    concurrent challenges for the same name never share a key.

    :Example:

    >>> build_key('/skydns/', 'a.b.example.com', 'tok')
    '/skydns/com/example/b/a/tok'

    A trailing dot is not normalized: ``example.com.`` yields an empty
    leading segment (``/skydns//com/example/tok``).

    :param str prefix: The CoreDNS etcd prefix, e.g. ``/skydns/``.
    :param str fqdn: The record name.
    :param str token: The challenge validation value.
    :returns: The etcd key.
    :rtype: str
    """
    labels = fqdn.split('.')
    labels.reverse()
    return prefix + '/'.join(labels) + '/' + token


def prefix_range_end(key: bytes) -> bytes:
    """Return the end of the etcd key range covering every key prefixed by `key`."""
    end = bytearray(key)
    for i in reversed(range(len(end))):
        if end[i] < 0xff:
            end[i] += 1
            return bytes(end[:i + 1])
    # every key sorts after an all-0xff prefix; "\0" means "to the end"
    return b'\0'


class TXTRecord(jose.JSONObjectWithFields):
    """TXT record value as read by CoreDNS' etcd plugin."""
    text: str = jose.field('text', omitempty=True)
    ttl: int = jose.field('ttl', omitempty=True)

    def dumps(self) -> str:
        """Serialize to the compact JSON stored in etcd."""
        return self.json_dumps(separators=(',', ':'))


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode('ascii')


class EtcdClient:
    """
    Encapsulates all communication with the etcd v3 JSON gateway.

    A client is a context manager: entering it authenticates (unless no
    username is set) and leaving it closes the HTTP session. All requests
    made through one client share a single deadline.
    """

    def __init__(self, endpoints: Sequence[str], username: str = '', password: str = '',
                 timeout: float = constants.OPERATION_TIMEOUT) -> None:
        if not endpoints:
            raise errors.StoreConnectionError('No etcd endpoints configured.')
        self.endpoints = [endpoint.rstrip('/') for endpoint in endpoints]
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session = requests.Session()
        self._deadline = time.monotonic() + timeout
        self._active = 0

    def __enter__(self) -> 'EtcdClient':
        try:
            if self.username:
                self._authenticate()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type: Optional[type[BaseException]],
                 exc_value: Optional[BaseException],
                 traceback: Optional[TracebackType]) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP session."""
        self.session.close()

    def put(self, key: str, value: str) -> None:
        """
        Store `value` under exactly `key`, replacing any previous value.

        :param str key: The etcd key.
        :param str value: The value to store.
        :raises .StoreOperationError: if the gateway rejects the request or times out.
        """
        self._request(constants.ETCD_PUT_PATH, {
            'key': _b64(key.encode('utf-8')),
            'value': _b64(value.encode('utf-8')),
        })
        logger.debug('Put etcd key %s', key)

    def delete_prefix(self, key: str) -> int:
        """
        Delete `key` and every key it prefixes.

        Deleting a range that holds no keys succeeds.

        :param str key: The etcd key (and prefix) to delete.
        :returns: The number of deleted keys.
        :rtype: int
        :raises .StoreOperationError: if the gateway rejects the request or times out.
        """
        raw_key = key.encode('utf-8')
        result = self._request(constants.ETCD_DELETE_RANGE_PATH, {
            'key': _b64(raw_key),
            'range_end': _b64(prefix_range_end(raw_key)),
        })
        # int64 fields are strings in the gateway's JSON, and zero values are omitted
        deleted = int(result.get('deleted', 0))
        logger.debug('Deleted %d etcd key(s) under %s', deleted, key)
        return deleted

    def _authenticate(self) -> None:
        try:
            result = self._request(constants.ETCD_AUTHENTICATE_PATH, {
                'name': self.username,
                'password': self.password,
            })
        except errors.StoreTimeoutError:
            raise
        except errors.StoreOperationError as e:
            raise errors.StoreConnectionError(
                'etcd authentication failed for user {0}: {1}'.format(self.username, e)) from e

        token = result.get('token')
        if not token:
            raise errors.StoreConnectionError(
                'etcd authentication for user {0} returned no token'.format(self.username))
        self.session.headers['Authorization'] = token
        logger.debug('Authenticated to etcd as %s', self.username)

    def _remaining(self) -> float:
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise errors.StoreTimeoutError(
                'etcd operation exceeded its {0:g}s time budget'.format(self.timeout))
        return remaining

    def _request(self, path: str, payload: dict[str, str]) -> dict[str, Any]:
        """
        POST `payload` to `path`, failing over across endpoints on connection errors.

        :returns: The decoded JSON response body.
        :raises .StoreConnectionError: if no endpoint can be reached.
        :raises .StoreTimeoutError: if the time budget runs out.
        :raises .StoreOperationError: if the gateway answers with an error.
        """
        failures = []
        for offset in range(len(self.endpoints)):
            index = (self._active + offset) % len(self.endpoints)
            url = self.endpoints[index] + path
            try:
                # the requests timeout bounds each socket read, not the whole exchange
                with self.session.post(url, json=payload, timeout=self._remaining(),
                                       stream=True) as response:
                    body = self._read_body(response)
            except requests.exceptions.Timeout as e:
                raise errors.StoreTimeoutError(
                    'etcd request to {0} timed out: {1}'.format(url, e)) from e
            except requests.exceptions.ConnectionError as e:
                logger.debug('Unable to reach etcd endpoint %s: %s', url, e)
                failures.append('{0}: {1}'.format(self.endpoints[index], e))
                continue
            except requests.exceptions.RequestException as e:
                raise errors.StoreOperationError(
                    'Encountered error calling {0}: {1}'.format(url, e)) from e

            self._active = index
            return self._handle_response(url, response, body)

        raise errors.StoreConnectionError(
            'Unable to reach any etcd endpoint: {0}'.format('; '.join(failures)))

    def _read_body(self, response: requests.Response) -> bytes:
        chunks = []
        for chunk in response.iter_content(chunk_size=_READ_CHUNK_SIZE):
            self._remaining()
            chunks.append(chunk)
        self._remaining()
        return b''.join(chunks)

    @staticmethod
    def _handle_response(url: str, response: requests.Response,
                         body: bytes) -> dict[str, Any]:
        text = body.decode('utf-8', 'replace')
        try:
            result = json.loads(text)
        except ValueError:
            result = None

        if not response.ok:
            detail = text
            if isinstance(result, dict):
                detail = result.get('message') or result.get('error') or detail
            logger.debug('etcd gateway %s answered %d: %s', url, response.status_code, detail)
            raise errors.StoreOperationError(
                'Received response from etcd: {0} {1}'.format(response.status_code, detail))

        if not isinstance(result, dict):
            raise errors.StoreOperationError(
                'etcd gateway returned a non-JSON response: {0}'.format(text))
        return result
