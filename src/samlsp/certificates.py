"""
Helpers for the IdP certificates trusted to sign messages.
"""
import logging
import re

import requests
from cryptography import x509

from samlsp.exception import CertificateResolutionError


logger = logging.getLogger(__name__)

PEM_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_FOOTER = "-----END CERTIFICATE-----"

_PEM_BLOCK = re.compile(
    r"-----BEGIN CERTIFICATE-----\s*.+?\s*-----END CERTIFICATE-----", re.DOTALL
)


def cert_to_pem(cert):
    """
    Wraps a bare base64 certificate body in PEM armor.

    :type cert: str
    :rtype: str

    :param cert: a PEM certificate or only its base64 body
    :return: a PEM certificate
    """
    if PEM_HEADER in cert:
        return cert
    body = "".join(cert.split())
    lines = [body[i:i + 64] for i in range(0, len(body), 64)]
    return "\n".join([PEM_HEADER] + lines + [PEM_FOOTER]) + "\n"


def strip_certificate(cert):
    """
    Removes the PEM header and footer and normalizes line endings, as expected
    inside a ds:X509Certificate element.

    :type cert: str
    :rtype: str
    """
    cert = re.sub(r"-+BEGIN CERTIFICATE-+\r?\n?", "", cert)
    cert = re.sub(r"-+END CERTIFICATE-+\r?\n?", "", cert)
    return cert.replace("\r\n", "\n")


def load_certificate(cert):
    """
    :type cert: str
    :rtype: cryptography.x509.Certificate

    :param cert: a PEM certificate or its base64 body
    :return: the parsed certificate
    :raise ValueError: if the data is not a certificate
    """
    return x509.load_pem_x509_certificate(cert_to_pem(cert).encode("ascii"))


def split_pem_bundle(text):
    """
    :type text: str
    :rtype: list[str]

    :param text: one or more concatenated PEM certificates
    :return: the individual PEM certificates
    """
    return _PEM_BLOCK.findall(text)


def certs_to_check(cert_option):
    """
    Resolves the configured trusted certificates.

    Called for every validation so that a rotated certificate is picked up
    without a restart.

    :type cert_option: str | list[str] | (() -> str | list[str]) | None
    :rtype: list[str]

    :param cert_option: the "cert" configuration value
    :return: the certificates to try, empty if none are configured
    :raise CertificateResolutionError: if a resolver fails or returns nothing
    """
    if not cert_option:
        return []

    certs = cert_option
    if callable(cert_option):
        try:
            certs = cert_option()
        except CertificateResolutionError:
            raise
        except Exception as err:
            raise CertificateResolutionError("Failed to resolve signing certificates") from err

    if isinstance(certs, str):
        certs = [certs]
    certs = [cert for cert in (certs or []) if cert]
    if not certs:
        raise CertificateResolutionError("No signing certificate resolved")
    return certs


class RemoteCertificateResolver(object):
    """
    Fetches the IdP signing certificate(s) from a URL serving PEM data.

    Instances are callables and can be used directly as the "cert" option.
    """

    def __init__(self, url, timeout=5, session=None):
        """
        :type url: str
        :type timeout: float
        :type session: requests.Session

        :param url: where the PEM bundle is published
        :param timeout: seconds to wait for the remote store
        :param session: optional session to reuse connections
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self):
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as err:
            msg = "Failed to fetch signing certificates from {}".format(self.url)
            logger.warning(msg)
            raise CertificateResolutionError(msg) from err

        certs = split_pem_bundle(resp.text)
        if not certs:
            raise CertificateResolutionError("No certificate found at {}".format(self.url))
        logger.debug("Fetched {} certificate(s) from {}".format(len(certs), self.url))
        return certs
