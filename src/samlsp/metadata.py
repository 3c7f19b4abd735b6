"""
Generation of the SP metadata document.
"""
import logging
import re

from lxml import etree

from samlsp.certificates import strip_certificate
from samlsp.exception import SAMLSPConfigurationError
from samlsp.request import RequestBuilder
from samlsp.xml_util import BINDING_HTTP_POST
from samlsp.xml_util import DS_NS
from samlsp.xml_util import MD_NS
from samlsp.xml_util import SAMLP_NS
from samlsp.xmlenc import METADATA_ENCRYPTION_METHODS


logger = logging.getLogger(__name__)


def _md(name):
    return "{{{}}}{}".format(MD_NS, name)


def _ds(name):
    return "{{{}}}{}".format(DS_NS, name)


def _key_descriptor(parent, use, cert):
    key_descriptor = etree.SubElement(parent, _md("KeyDescriptor"), use=use)
    key_info = etree.SubElement(key_descriptor, _ds("KeyInfo"))
    x509_data = etree.SubElement(key_info, _ds("X509Data"))
    etree.SubElement(x509_data, _ds("X509Certificate")).text = strip_certificate(cert)
    return key_descriptor


def generate_service_provider_metadata(config, decryption_cert=None, signing_cert=None):
    """
    Creates the metadata describing this SP, to be registered at the IdP.

    :type config: samlsp.config.SPConfig
    :type decryption_cert: str | None
    :type signing_cert: str | None
    :rtype: str

    :param config: the SP configuration
    :param decryption_cert: PEM certificate matching decryption_pvk
    :param signing_cert: PEM certificate matching private_cert
    :return: the EntityDescriptor, pretty printed
    :raise SAMLSPConfigurationError: if a key is configured without its certificate
    """
    if config["decryption_pvk"] and not decryption_cert:
        raise SAMLSPConfigurationError(
            "Missing decryption_cert while generating metadata for decrypting service provider"
        )
    if config["private_cert"] and not signing_cert:
        raise SAMLSPConfigurationError(
            "Missing signing_cert while generating metadata for signing service provider messages"
        )

    issuer = config["issuer"]
    entity_descriptor = etree.Element(
        _md("EntityDescriptor"),
        nsmap={None: MD_NS, "ds": DS_NS},
        entityID=issuer,
        ID=re.sub(r"\W", "_", issuer, flags=re.ASCII),
    )
    sp_sso_descriptor = etree.SubElement(
        entity_descriptor, _md("SPSSODescriptor"), protocolSupportEnumeration=SAMLP_NS
    )

    if config["private_cert"]:
        _key_descriptor(sp_sso_descriptor, "signing", signing_cert)

    if config["decryption_pvk"]:
        key_descriptor = _key_descriptor(sp_sso_descriptor, "encryption", decryption_cert)
        for algorithm in METADATA_ENCRYPTION_METHODS:
            etree.SubElement(key_descriptor, _md("EncryptionMethod"), Algorithm=algorithm)

    if config["logout_callback_url"]:
        etree.SubElement(
            sp_sso_descriptor,
            _md("SingleLogoutService"),
            Binding=BINDING_HTTP_POST,
            Location=config["logout_callback_url"],
        )

    if config["identifier_format"]:
        etree.SubElement(sp_sso_descriptor, _md("NameIDFormat")).text = config["identifier_format"]

    etree.SubElement(
        sp_sso_descriptor,
        _md("AssertionConsumerService"),
        index="1",
        isDefault="true",
        Binding=BINDING_HTTP_POST,
        Location=RequestBuilder(config).get_callback_url(),
    )

    logger.debug("Generated metadata for {}".format(issuer))
    return etree.tostring(
        entity_descriptor, pretty_print=True, xml_declaration=True, encoding="UTF-8"
    ).decode("utf-8")
