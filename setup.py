"""
setup.py
"""

from setuptools import setup, find_packages

setup(
    name='samlsp',
    version='1.0.0',
    description='SAML 2.0 Service Provider: authentication and single logout with one IdP.',
    license='Apache 2.0',
    packages=find_packages('src/'),
    package_dir={'': 'src'},
    install_requires=[
        "lxml",
        "cryptography",
        "signxml",
        "xmlsec",
        "requests",
        "PyYAML",
        "click",
    ],
    extras_require={
        "test": ["pytest", "responses", "pycryptodomex"],
    },
    zip_safe=False,
    python_requires=">=3.9",
    classifiers=[
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    entry_points={
        "console_scripts": ["samlsp-metadata=samlsp.scripts.samlsp_metadata:construct_saml_metadata"]
    }
)
