from setuptools import find_packages
from setuptools import setup

version = '0.1.0'

install_requires = [
    # acme is pinned alongside certbot: the plugin API and the challenge types
    # it hands to plugins are released together.
    'acme>=3.0.0',
    'certbot>=3.0.0',
    'josepy>=1.13.0',
    'kubernetes>=25.3.0',
    'requests>=2.20.0',
    'urllib3>=1.26.5',
]

docs_extras = [
    'Sphinx>=1.0',  # autodoc_member_order = 'bysource', autodoc_default_flags
    'sphinx_rtd_theme',
]

test_extras = [
    'pytest',
    'requests-mock',
]

setup(
    name='certbot-dns-coredns',
    version=version,
    description="CoreDNS (etcd backend) DNS Authenticator plugin for Certbot",
    license='Apache License 2.0',
    python_requires='>=3.9.2',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Plugins',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: Security',
        'Topic :: System :: Installation/Setup',
        'Topic :: System :: Networking',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'docs': docs_extras,
        'test': test_extras,
    },
    entry_points={
        'certbot.plugins': [
            'dns-coredns = certbot_dns_coredns._internal.dns_coredns:Authenticator',
        ],
    },
)
