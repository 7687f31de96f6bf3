"""
The `~certbot_dns_coredns.dns_coredns` plugin automates the process of
completing a ``dns-01`` challenge (`~acme.challenges.DNS01`) by creating, and
subsequently removing, TXT records in the etcd store backing a CoreDNS zone.

Named Arguments
---------------

==================================== =====================================
``--dns-coredns-config``             CoreDNS solver configuration_ JSON
                                     file. (Required)
``--dns-coredns-namespace``          Kubernetes namespace holding the
                                     credential secrets.
                                     (Default: default)
``--dns-coredns-kubeconfig``         Kubernetes client configuration file.
                                     (Default: in-cluster service account,
                                     then the default kubeconfig)
``--dns-coredns-propagation-seconds`` The number of seconds to wait for DNS
                                     to propagate before asking the ACME
                                     server to verify the DNS record.
                                     (Default: 30)
==================================== =====================================


Configuration
-------------

The configuration file names the etcd prefix CoreDNS serves the zone from,
the etcd endpoints, and the Kubernetes secrets holding the etcd username and
password.

.. code-block:: json
   :name: coredns.json
   :caption: Example configuration file:

   {
     "coreDNSPrefix": "/skydns/",
     "etcdEndpoints": "https://etcd-0.etcd:2379,https://etcd-1.etcd:2379",
     "etcdUsernameRef": {"name": "etcd-credentials", "key": "username"},
     "etcdPasswordRef": {"name": "etcd-credentials", "key": "password"}
   }

Each challenge is stored under its own key, built from the prefix, the
labels of the validation name in reverse order and the validation value,
e.g. ``/skydns/com/example/_acme-challenge/<validation>``, with the value
``{"text":"<validation>","ttl":60}``.

Etcd is reached through its v3 JSON gateway; all requests of one challenge
must complete within 5 seconds.

.. caution::
   The configuration file does not hold credentials, but the Kubernetes
   service account used by Certbot must be allowed to read the referenced
   secrets. Grant ``get`` on exactly those secrets and nothing more.


Examples
--------

.. code-block:: bash
   :caption: To acquire a certificate for ``example.com``

   certbot certonly \\
     --authenticator dns-coredns \\
     --dns-coredns-config ~/.secrets/certbot/coredns.json \\
     --dns-coredns-namespace dns \\
     -d example.com

.. code-block:: bash
   :caption: To acquire a certificate for ``example.com`` from outside the cluster

   certbot certonly \\
     --authenticator dns-coredns \\
     --dns-coredns-config ~/.secrets/certbot/coredns.json \\
     --dns-coredns-kubeconfig ~/.kube/config \\
     -d example.com

"""
