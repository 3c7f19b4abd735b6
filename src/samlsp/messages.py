"""
Typed SAML protocol messages sent by the SP.

Each class mirrors the schema element it serializes to; optional members are
left out of the XML when they are None.
"""
from lxml import etree

from samlsp.xml_util import BINDING_HTTP_POST
from samlsp.xml_util import SAML_NS
from samlsp.xml_util import SAMLP_NS
from samlsp.xml_util import STATUS_SUCCESS
from samlsp.xml_util import qname

SAML_VERSION = "2.0"

NAMEID_FORMAT_EMAILADDRESS = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"
NAMEID_FORMAT_UNSPECIFIED = "urn:oasis:names:tc:SAML:1.1:nameid-format:unspecified"
NAMEID_FORMAT_PERSISTENT = "urn:oasis:names:tc:SAML:2.0:nameid-format:persistent"
NAMEID_FORMAT_TRANSIENT = "urn:oasis:names:tc:SAML:2.0:nameid-format:transient"

PASSWORD_PROTECTED_TRANSPORT = "urn:oasis:names:tc:SAML:2.0:ac:classes:PasswordProtectedTransport"

AUTHN_CONTEXT_COMPARISONS = ["exact", "minimum", "maximum", "better"]


def _set_optional(element, name, value):
    if value is None:
        return
    if isinstance(value, bool):
        value = "true" if value else "false"
    element.set(name, str(value))


class SamlMessage(object):
    """
    Base class for the messages, provides serialization.
    """
    nsmap = {"samlp": SAMLP_NS, "saml": SAML_NS}

    def to_element(self, parent=None):
        raise NotImplementedError()

    def to_string(self):
        """
        :rtype: str
        :return: the message serialized without XML declaration
        """
        return etree.tostring(self.to_element(), encoding="unicode")

    def __str__(self):
        return self.to_string()


class Issuer(SamlMessage):
    def __init__(self, text):
        self.text = text

    def to_element(self, parent=None):
        element = _make(parent, qname("saml", "Issuer"), self.nsmap)
        element.text = self.text
        return element


class NameID(SamlMessage):
    def __init__(self, text, format=None, name_qualifier=None, sp_name_qualifier=None):
        self.text = text
        self.format = format
        self.name_qualifier = name_qualifier
        self.sp_name_qualifier = sp_name_qualifier

    def to_element(self, parent=None):
        element = _make(parent, qname("saml", "NameID"), self.nsmap)
        _set_optional(element, "Format", self.format)
        _set_optional(element, "NameQualifier", self.name_qualifier)
        _set_optional(element, "SPNameQualifier", self.sp_name_qualifier)
        element.text = self.text
        return element


class NameIDPolicy(SamlMessage):
    def __init__(self, format, allow_create=True):
        self.format = format
        self.allow_create = allow_create

    def to_element(self, parent=None):
        element = _make(parent, qname("samlp", "NameIDPolicy"), self.nsmap)
        _set_optional(element, "Format", self.format)
        _set_optional(element, "AllowCreate", self.allow_create)
        return element


class RequestedAuthnContext(SamlMessage):
    def __init__(self, class_refs, comparison="exact"):
        """
        :type class_refs: list[str]
        :type comparison: str
        """
        if comparison not in AUTHN_CONTEXT_COMPARISONS:
            raise ValueError("Invalid comparison '{}'".format(comparison))
        self.class_refs = list(class_refs)
        self.comparison = comparison

    def to_element(self, parent=None):
        element = _make(parent, qname("samlp", "RequestedAuthnContext"), self.nsmap)
        element.set("Comparison", self.comparison)
        for class_ref in self.class_refs:
            etree.SubElement(element, qname("saml", "AuthnContextClassRef")).text = class_ref
        return element


class StatusCode(SamlMessage):
    def __init__(self, value, status_code=None):
        self.value = value
        self.status_code = status_code

    def to_element(self, parent=None):
        element = _make(parent, qname("samlp", "StatusCode"), self.nsmap)
        element.set("Value", self.value)
        if self.status_code is not None:
            self.status_code.to_element(element)
        return element


class Status(SamlMessage):
    def __init__(self, status_code, status_message=None):
        self.status_code = status_code
        self.status_message = status_message

    def to_element(self, parent=None):
        element = _make(parent, qname("samlp", "Status"), self.nsmap)
        self.status_code.to_element(element)
        if self.status_message is not None:
            etree.SubElement(element, qname("samlp", "StatusMessage")).text = self.status_message
        return element


class RequestAbstractType(SamlMessage):
    """
    Members shared by the protocol messages (ID, IssueInstant, Destination,
    Issuer).
    """
    element_name = None

    def __init__(self, id, issue_instant, destination=None, issuer=None):
        self.id = id
        self.version = SAML_VERSION
        self.issue_instant = issue_instant
        self.destination = destination
        self.issuer = issuer

    def _base_element(self, parent):
        element = _make(parent, qname("samlp", self.element_name), self.nsmap)
        element.set("ID", self.id)
        element.set("Version", self.version)
        element.set("IssueInstant", self.issue_instant)
        _set_optional(element, "Destination", self.destination)
        return element

    def _append_issuer(self, element):
        if self.issuer is not None:
            Issuer(self.issuer).to_element(element)


class AuthnRequest(RequestAbstractType):
    element_name = "AuthnRequest"

    def __init__(
        self,
        id,
        issue_instant,
        destination=None,
        issuer=None,
        protocol_binding=BINDING_HTTP_POST,
        assertion_consumer_service_url=None,
        is_passive=None,
        force_authn=None,
        attribute_consuming_service_index=None,
        provider_name=None,
        name_id_policy=None,
        requested_authn_context=None,
    ):
        super().__init__(id, issue_instant, destination, issuer)
        self.protocol_binding = protocol_binding
        self.assertion_consumer_service_url = assertion_consumer_service_url
        self.is_passive = is_passive
        self.force_authn = force_authn
        self.attribute_consuming_service_index = attribute_consuming_service_index
        self.provider_name = provider_name
        self.name_id_policy = name_id_policy
        self.requested_authn_context = requested_authn_context

    def to_element(self, parent=None):
        element = self._base_element(parent)
        _set_optional(element, "ProtocolBinding", self.protocol_binding)
        _set_optional(element, "AssertionConsumerServiceURL", self.assertion_consumer_service_url)
        if self.is_passive:
            element.set("IsPassive", "true")
        if self.force_authn:
            element.set("ForceAuthn", "true")
        _set_optional(element, "AttributeConsumingServiceIndex", self.attribute_consuming_service_index)
        _set_optional(element, "ProviderName", self.provider_name)
        self._append_issuer(element)
        if self.name_id_policy is not None:
            self.name_id_policy.to_element(element)
        if self.requested_authn_context is not None:
            self.requested_authn_context.to_element(element)
        return element


class LogoutRequest(RequestAbstractType):
    element_name = "LogoutRequest"

    def __init__(self, id, issue_instant, name_id, destination=None, issuer=None, session_index=None):
        """
        :type name_id: NameID
        :type session_index: str | None
        """
        super().__init__(id, issue_instant, destination, issuer)
        self.name_id = name_id
        self.session_index = session_index

    def to_element(self, parent=None):
        element = self._base_element(parent)
        self._append_issuer(element)
        self.name_id.to_element(element)
        if self.session_index:
            etree.SubElement(element, qname("samlp", "SessionIndex")).text = self.session_index
        return element


class LogoutResponse(RequestAbstractType):
    element_name = "LogoutResponse"

    def __init__(self, id, issue_instant, in_response_to, destination=None, issuer=None, status=None):
        super().__init__(id, issue_instant, destination, issuer)
        self.in_response_to = in_response_to
        self.status = status if status is not None else Status(StatusCode(STATUS_SUCCESS))

    def to_element(self, parent=None):
        element = self._base_element(parent)
        _set_optional(element, "InResponseTo", self.in_response_to)
        self._append_issuer(element)
        self.status.to_element(element)
        return element


def _make(parent, tag, nsmap):
    if parent is None:
        return etree.Element(tag, nsmap=nsmap)
    return etree.SubElement(parent, tag)
