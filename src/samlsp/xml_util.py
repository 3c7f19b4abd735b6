"""
Namespaces and parsing helpers shared by the message builders and validators.
"""
from lxml import etree

from samlsp.exception import MalformedMessageError

SAMLP_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
MD_NS = "urn:oasis:names:tc:SAML:2.0:metadata"
DS_NS = "http://www.w3.org/2000/09/xmldsig#"
XENC_NS = "http://www.w3.org/2001/04/xmlenc#"
XENC11_NS = "http://www.w3.org/2009/xmlenc11#"
EC_NS = "http://www.w3.org/2001/10/xml-exc-c14n#"

NAMESPACES = {
    "samlp": SAMLP_NS,
    "saml": SAML_NS,
    "md": MD_NS,
    "ds": DS_NS,
    "xenc": XENC_NS,
    "xenc11": XENC11_NS,
    "ec": EC_NS,
}

BINDING_HTTP_POST = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"
BINDING_HTTP_REDIRECT = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect"

STATUS_SUCCESS = "urn:oasis:names:tc:SAML:2.0:status:Success"
STATUS_RESPONDER = "urn:oasis:names:tc:SAML:2.0:status:Responder"
STATUS_REQUESTER = "urn:oasis:names:tc:SAML:2.0:status:Requester"
STATUS_NO_PASSIVE = "urn:oasis:names:tc:SAML:2.0:status:NoPassive"


def qname(prefix, local_name):
    """
    :type prefix: str
    :type local_name: str
    :rtype: str

    :param prefix: one of the prefixes in NAMESPACES
    :param local_name: element or attribute name
    :return: the name in lxml's {namespace}name notation
    """
    return "{{{ns}}}{name}".format(ns=NAMESPACES[prefix], name=local_name)


def _make_parser():
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
    )


def parse_xml(data):
    """
    Parses untrusted XML. Documents carrying a DTD are refused.

    :type data: bytes | str
    :rtype: lxml.etree._Element

    :param data: the serialized document
    :return: the root element
    :raise MalformedMessageError: if the document is not well-formed or has a DTD
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        root = etree.fromstring(data, parser=_make_parser())
    except (etree.XMLSyntaxError, ValueError) as err:
        raise MalformedMessageError("Message is not well-formed XML") from err

    docinfo = root.getroottree().docinfo
    if docinfo.doctype or docinfo.internalDTD is not None:
        raise MalformedMessageError("Message must not contain a DTD")
    return root


def element_text(element):
    """
    :type element: lxml.etree._Element
    :rtype: str | None

    :return: all text of the element, comments and child element tags left
        out, or None if there is none
    """
    text = "".join(element.itertext())
    return text or None


def find_text(element, path):
    """
    :type element: lxml.etree._Element
    :type path: str
    :rtype: str | None

    :param element: the context element
    :param path: a prefixed path, e.g. "saml:Issuer"
    :return: the text of the first match or None if there is no match or no text
    """
    found = element.find(path, namespaces=NAMESPACES)
    if found is None:
        return None
    return element_text(found)


def local_name(element):
    return etree.QName(element).localname


def is_element(element, prefix, name):
    return element.tag == qname(prefix, name)


def to_string(element):
    return etree.tostring(element, encoding="unicode")
