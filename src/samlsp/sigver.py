"""
Signature verification for SAML messages.

Covers enveloped XML signatures (HTTP-POST binding) and the detached query
string signatures of the HTTP-Redirect binding. Only the configured
certificates are trusted; KeyInfo carried by a message is ignored.

XML signatures are checked by signxml. Callers continue with the element
signxml returns as verified, never with the received tree.
"""
import base64
import binascii
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric import rsa
from signxml import DigestAlgorithm
from signxml import SignatureConfiguration
from signxml import SignatureMethod
from signxml import XMLVerifier
from signxml.exceptions import InvalidInput
from signxml.exceptions import InvalidSignature as InvalidXMLSignature

from samlsp.certificates import load_certificate
from samlsp.exception import InvalidSignatureError
from samlsp.exception import SAMLSPConfigurationError
from samlsp.util import quote_component
from samlsp.xml_util import DS_NS
from samlsp.xml_util import NAMESPACES
from samlsp.xml_util import parse_xml


logger = logging.getLogger(__name__)

SIG_RSA_SHA1 = DS_NS + "rsa-sha1"
SIG_RSA_SHA256 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha256"
SIG_RSA_SHA512 = "http://www.w3.org/2001/04/xmldsig-more#rsa-sha512"

# signature_algorithm configuration value -> SigAlg used for outgoing messages
SIGNATURE_ALGORITHMS = {
    "sha1": SIG_RSA_SHA1,
    "sha256": SIG_RSA_SHA256,
    "sha512": SIG_RSA_SHA512,
}

# most specific last, the last match wins
_REDIRECT_HASHES = [
    ("sha1", hashes.SHA1),
    ("sha224", hashes.SHA224),
    ("sha256", hashes.SHA256),
    ("sha384", hashes.SHA384),
    ("sha512", hashes.SHA512),
]

# IdPs still sign with SHA-1, which signxml refuses unless asked to
SIGNATURE_CONFIGURATION = SignatureConfiguration(
    expect_references=1,
    signature_methods=frozenset(method for method in SignatureMethod if "HMAC" not in method.name),
    digest_algorithms=frozenset(DigestAlgorithm),
)


def validate_signature(full_xml, current_node, certs):
    """
    Checks that current_node in the full_xml document carries exactly one
    valid signature of itself.

    :type full_xml: bytes | str
    :type current_node: lxml.etree._Element
    :type certs: list[str]
    :rtype: lxml.etree._Element | None

    :param full_xml: the serialized document current_node was parsed from
    :param current_node: the element that must be signed
    :param certs: candidate certificates, any of them may have signed
    :return: the signed element as verified, without its signature, or None
        if no certificate verifies the signature
    """
    signatures = current_node.findall(".//ds:Signature", namespaces=NAMESPACES)
    # This function is expecting to validate exactly one signature, so if we
    # find more or fewer than that, reject.
    if len(signatures) != 1:
        logger.debug("Expected exactly one signature, found {}".format(len(signatures)))
        return None

    try:
        _check_reference(full_xml, signatures[0], current_node)
    except InvalidSignatureError as err:
        logger.debug("Signature rejected: {}".format(err))
        return None

    for cert in certs:
        try:
            certificate = load_certificate(cert)
        except ValueError:
            logger.warning("Skipping a configured certificate that could not be parsed")
            continue
        try:
            result = XMLVerifier().verify(current_node, x509_cert=certificate, expect_config=SIGNATURE_CONFIGURATION)
        except (InvalidXMLSignature, InvalidInput) as err:
            logger.debug("Signature does not verify: {}".format(err))
            continue
        return result.signed_xml
    return None


def _check_reference(full_xml, signature, current_node):
    references = signature.findall("ds:SignedInfo/ds:Reference", namespaces=NAMESPACES)
    # We expect each signature to contain exactly one reference to the element
    # we are validating.
    if len(references) != 1:
        raise InvalidSignatureError("Signature must contain exactly one reference")

    uri = references[0].get("URI", "")
    ref_id = uri[1:] if uri.startswith("#") else uri
    id_attribute = "ID" if current_node.get("ID") else "Id"
    if not ref_id or current_node.get(id_attribute) != ref_id:
        raise InvalidSignatureError("Signature does not reference the signed element")

    # Only one element of the whole document may carry the referenced id,
    # otherwise the digest may be computed over another node than the one
    # we trust.
    document = parse_xml(full_xml)
    referenced = document.xpath("//*[@ID=$ref_id or @Id=$ref_id]", ref_id=ref_id)
    if len(referenced) != 1:
        raise InvalidSignatureError("Referenced id '{}' is not unique".format(ref_id))


def load_private_key(private_key):
    """
    :type private_key: str | bytes
    :rtype: cryptography.hazmat.primitives.asymmetric.rsa.RSAPrivateKey

    :param private_key: PEM encoded, unencrypted private key
    :raise SAMLSPConfigurationError: if the key can not be loaded
    """
    if isinstance(private_key, str):
        private_key = private_key.encode("ascii")
    try:
        return serialization.load_pem_private_key(private_key, password=None)
    except (ValueError, TypeError) as err:
        raise SAMLSPConfigurationError("Invalid private key") from err




def _redirect_signed_octets(saml_message, message_types=("SAMLRequest", "SAMLResponse")):
    parts = []
    for key in message_types + ("RelayState", "SigAlg"):
        if saml_message.get(key):
            parts.append("{}={}".format(key, quote_component(saml_message[key])))
    return "&".join(parts).encode("utf-8")


def sign_redirect_message(saml_message, private_key, signature_algorithm="sha1"):
    """
    Adds SigAlg and Signature to an outgoing HTTP-Redirect message.

    The signature covers SAMLRequest or SAMLResponse, RelayState and SigAlg
    in that order, each only if present.

    :type saml_message: dict[str, str]
    :type private_key: str
    :type signature_algorithm: str
    :rtype: dict[str, str]

    :param saml_message: the query parameters of the message
    :param private_key: PEM encoded signing key
    :param signature_algorithm: one of sha1, sha256, sha512
    :return: the same dict with SigAlg and Signature set
    """
    sig_alg = SIGNATURE_ALGORITHMS.get(signature_algorithm, SIG_RSA_SHA1)
    hash_cls = _redirect_hash(sig_alg)
    saml_message["SigAlg"] = sig_alg

    key = load_private_key(private_key)
    signature = key.sign(_redirect_signed_octets(saml_message), padding.PKCS1v15(), hash_cls())
    saml_message["Signature"] = base64.b64encode(signature).decode("ascii")
    return saml_message


def signed_octets_from_query(query_string, message_type):
    """
    Extracts the signed part of a received query string without decoding and
    re-encoding it.

    :type query_string: str
    :type message_type: str
    :rtype: bytes

    :param query_string: the raw query string as received
    :param message_type: SAMLRequest or SAMLResponse
    """
    raw = {}
    for part in query_string.lstrip("?").split("&"):
        key, _, value = part.partition("=")
        raw.setdefault(key, value)

    parts = [
        "{}={}".format(key, raw[key])
        for key in (message_type, "RelayState", "SigAlg")
        if key in raw
    ]
    return "&".join(parts).encode("utf-8")


def _redirect_hash(sig_alg):
    matches = [hash_cls for name, hash_cls in _REDIRECT_HASHES if name in sig_alg.lower()]
    if not matches or "rsa" not in sig_alg.lower():
        return None
    return matches[-1]


def validate_redirect_signature(message_type, envelope, certs, original_query=None):
    """
    Verifies the detached signature of an HTTP-Redirect message.

    :type message_type: str
    :type envelope: dict[str, str]
    :type certs: list[str]
    :type original_query: str | None
    :rtype: bool

    :param message_type: SAMLRequest or SAMLResponse
    :param envelope: the decoded query parameters
    :param certs: candidate certificates
    :param original_query: the raw query string, if the web layer kept it
    :return: True if the signature verifies with at least one certificate
    """
    signature = envelope.get("Signature")
    sig_alg = envelope.get("SigAlg")
    if not signature or not sig_alg:
        logger.debug("Redirect message has no Signature or SigAlg")
        return False

    hash_cls = _redirect_hash(sig_alg)
    if hash_cls is None:
        logger.debug("{} is not supported".format(sig_alg))
        return False

    if original_query:
        octets = signed_octets_from_query(original_query, message_type)
    else:
        octets = _redirect_signed_octets(envelope, message_types=(message_type,))

    try:
        signature_bytes = base64.b64decode(signature)
    except (binascii.Error, ValueError):
        logger.debug("Redirect signature is not valid base64")
        return False

    for cert in certs:
        try:
            public_key = load_certificate(cert).public_key()
        except ValueError:
            logger.warning("Skipping a configured certificate that could not be parsed")
            continue
        if not isinstance(public_key, rsa.RSAPublicKey):
            continue
        try:
            public_key.verify(signature_bytes, octets, padding.PKCS1v15(), hash_cls())
        except InvalidSignature:
            continue
        return True
    return False
