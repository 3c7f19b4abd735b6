"""
Validation of the messages the IdP sends to the SP.

Every entry point returns a ValidationResult; the error slot holds the
SAMLSPError that ended the validation, if any.
"""
import logging
from collections import namedtuple

from samlsp.binding import base64_decode
from samlsp.binding import decode_redirect_message
from samlsp.certificates import certs_to_check
from samlsp.exception import AmbiguousAssertionError
from samlsp.exception import DecryptionError
from samlsp.exception import InvalidSignatureError
from samlsp.exception import IssuerMismatchError
from samlsp.exception import MalformedMessageError
from samlsp.exception import MissingDecryptionKeyError
from samlsp.exception import ProviderStatusError
from samlsp.exception import ReplayValidationError
from samlsp.exception import SAMLSPError
from samlsp.exception import UnrecognizedMessageError
from samlsp.internal import Profile
from samlsp.logging_util import samlsp_logging
from samlsp.sigver import validate_redirect_signature
from samlsp.sigver import validate_signature
from samlsp.xml_util import NAMESPACES
from samlsp.xml_util import STATUS_NO_PASSIVE
from samlsp.xml_util import STATUS_RESPONDER
from samlsp.xml_util import STATUS_SUCCESS
from samlsp.xml_util import element_text
from samlsp.xml_util import find_text
from samlsp.xml_util import is_element
from samlsp.xml_util import parse_xml
from samlsp.xml_util import to_string
from samlsp.xmlenc import decrypt_element


logger = logging.getLogger(__name__)

ValidationResult = namedtuple("ValidationResult", ["error", "profile", "logged_out"])
ValidationResult.__doc__ = """
Outcome of a validation.

error is None on success. profile is set for a login and for a logout
request received from the IdP. logged_out is True for logout messages.
"""


def _status_name(value):
    return value.rsplit(":", 1)[-1] if value else value


class ResponseValidator(object):
    """
    Validates Response, LogoutRequest and LogoutResponse messages received
    with the HTTP-POST or HTTP-Redirect binding.
    """

    def __init__(self, config, extractor):
        """
        :type config: samlsp.config.SPConfig
        :type extractor: samlsp.profile.ProfileExtractor
        """
        self.config = config
        self.extractor = extractor
        self.cache = config["cache_provider"]

    def _run(self, pipeline, *args):
        try:
            profile, logged_out = pipeline(*args)
        except SAMLSPError as err:
            samlsp_logging(logger, logging.DEBUG, "Message rejected: {}".format(err), None, exc_info=True)
            return ValidationResult(err, None, False)
        return ValidationResult(None, profile, logged_out)

    def validate_post_response(self, envelope):
        """
        :type envelope: dict[str, str]
        :rtype: samlsp.validator.ValidationResult

        :param envelope: the POSTed fields, SAMLResponse and RelayState
        """
        return self._run(self._post_response, envelope)

    def validate_post_request(self, envelope):
        """
        :type envelope: dict[str, str]
        :rtype: samlsp.validator.ValidationResult

        :param envelope: the POSTed fields, SAMLRequest and RelayState
        """
        return self._run(self._post_request, envelope)

    def validate_redirect(self, envelope, original_query=None):
        """
        :type envelope: dict[str, str]
        :type original_query: str | None
        :rtype: samlsp.validator.ValidationResult

        :param envelope: the decoded query parameters
        :param original_query: the raw query string, used verbatim to check the signature
        """
        return self._run(self._redirect, envelope, original_query)

    def _certs(self):
        certs = certs_to_check(self.config["cert"])
        if not certs:
            logger.debug("No IdP certificate configured, skipping signature checks")
        return certs

    def _decode_post(self, envelope, field):
        data = envelope.get(field)
        if not data:
            raise MalformedMessageError("Missing {}".format(field))
        xml = base64_decode(data)
        return xml, parse_xml(xml)

    def _post_response(self, envelope):
        xml, root = self._decode_post(envelope, "SAMLResponse")

        if is_element(root, "samlp", "LogoutResponse"):
            root = self._check_logout_signature(xml, root)
            self.verify_logout_response(root)
            return None, True

        if not is_element(root, "samlp", "Response"):
            certs = self._certs()
            if certs and validate_signature(xml, root, certs) is None:
                raise InvalidSignatureError("Invalid signature: No response found")
            raise UnrecognizedMessageError("Unknown SAML response message")

        in_response_to = root.get("InResponseTo")
        self._validate_in_response_to(in_response_to)
        try:
            return self._verify_response(xml, root, in_response_to)
        finally:
            # the request id is used up by any decision on the response
            if in_response_to and self.config["validate_in_response_to"]:
                self.cache.remove(in_response_to)

    def _verify_response(self, xml, root, in_response_to):
        response_xml = to_string(root)
        certs = self._certs()
        signed_response = validate_signature(xml, root, certs) if certs else None
        if signed_response is not None:
            root = signed_response

        assertions = root.findall("saml:Assertion", namespaces=NAMESPACES)
        encrypted_assertions = root.findall("saml:EncryptedAssertion", namespaces=NAMESPACES)
        if len(assertions) + len(encrypted_assertions) > 1:
            raise AmbiguousAssertionError("Invalid signature: multiple assertions")

        if assertions:
            assertion = assertions[0]
            assertion_xml = to_string(assertion)
            if certs and signed_response is None:
                assertion = validate_signature(xml, assertion, certs)
                if assertion is None:
                    raise InvalidSignatureError("Invalid signature")
            samlsp_logging(logger, logging.DEBUG, "Assertion signature accepted", in_response_to)
            profile = self.extractor.extract(assertion, assertion_xml, response_xml, in_response_to)
            return profile, False

        if encrypted_assertions:
            if not self.config["decryption_pvk"]:
                raise MissingDecryptionKeyError("No decryption key for encrypted SAML response")
            decrypted_xml = decrypt_element(encrypted_assertions[0], self.config["decryption_pvk"])
            try:
                assertion = parse_xml(decrypted_xml)
            except MalformedMessageError as err:
                raise DecryptionError("Invalid EncryptedAssertion content") from err
            if not is_element(assertion, "saml", "Assertion"):
                raise DecryptionError("Invalid EncryptedAssertion content")
            assertion_xml = to_string(assertion)
            if certs and signed_response is None:
                assertion = validate_signature(decrypted_xml, assertion, certs)
                if assertion is None:
                    raise InvalidSignatureError("Invalid signature from encrypted assertion")
            samlsp_logging(logger, logging.DEBUG, "Encrypted assertion accepted", in_response_to)
            profile = self.extractor.extract(assertion, assertion_xml, response_xml, in_response_to)
            return profile, False

        if self._is_no_passive(root, certs, signed_response is not None):
            return None, False
        raise MalformedMessageError("Missing SAML assertion")

    def _is_no_passive(self, root, certs, valid_signature):
        """
        Handles a Response without assertion. A signed NoPassive answer is not
        an error; any other non-Success status is reported, signed or not.

        :rtype: bool
        """
        status = root.find("samlp:Status", namespaces=NAMESPACES)
        if status is None:
            return False
        status_code = status.find("samlp:StatusCode", namespaces=NAMESPACES)
        if status_code is None or not status_code.get("Value"):
            return False
        nested_code = status_code.find("samlp:StatusCode", namespaces=NAMESPACES)

        if (status_code.get("Value") == STATUS_RESPONDER and nested_code is not None
                and nested_code.get("Value") == STATUS_NO_PASSIVE):
            if certs and not valid_signature:
                raise InvalidSignatureError("Invalid signature: NoPassive")
            return True

        msg_type = _status_name(status_code.get("Value"))
        if msg_type != "Success":
            message = find_text(status, "samlp:StatusMessage")
            if message is None and nested_code is not None:
                message = _status_name(nested_code.get("Value"))
            raise ProviderStatusError(
                "SAML provider returned {} error: {}".format(msg_type, message or "unspecified"),
                status_code=status_code.get("Value"),
                status_message=message,
                status_xml=to_string(status),
            )
        return False

    def _validate_in_response_to(self, in_response_to):
        if not self.config["validate_in_response_to"]:
            return
        if not in_response_to:
            raise ReplayValidationError("InResponseTo is missing from response")
        if self.cache.get(in_response_to) is None:
            raise ReplayValidationError("InResponseTo is not valid")

    def _check_logout_signature(self, xml, root):
        """
        :return: the verified element, or root when no certificate is configured
        """
        certs = self._certs()
        if not certs:
            return root
        signed = validate_signature(xml, root, certs)
        if signed is None:
            raise InvalidSignatureError("Invalid signature on documentElement")
        return signed

    def _post_request(self, envelope):
        xml, root = self._decode_post(envelope, "SAMLRequest")
        root = self._check_logout_signature(xml, root)
        if not is_element(root, "samlp", "LogoutRequest"):
            raise UnrecognizedMessageError("Unknown SAML request message")
        self.verify_logout_request(root)
        return self._logout_request_profile(root), True

    def _redirect(self, envelope, original_query=None):
        message_type = "SAMLRequest" if envelope.get("SAMLRequest") else "SAMLResponse"
        if not envelope.get(message_type):
            raise MalformedMessageError("Missing SAMLRequest or SAMLResponse")
        root = parse_xml(decode_redirect_message(envelope[message_type]))

        certs = self._certs()
        if certs:
            if not envelope.get("Signature"):
                raise InvalidSignatureError("Missing signature on redirect message")
            if not validate_redirect_signature(message_type, envelope, certs, original_query):
                raise InvalidSignatureError("Invalid signature")

        if message_type == "SAMLResponse":
            if not is_element(root, "samlp", "LogoutResponse"):
                raise UnrecognizedMessageError("Unknown SAML response message")
            self.verify_logout_response(root)
            return None, True

        if not is_element(root, "samlp", "LogoutRequest"):
            raise UnrecognizedMessageError("Unknown SAML request message")
        self.verify_logout_request(root)
        return self._logout_request_profile(root), True

    def verify_issuer(self, element):
        """
        :type element: lxml.etree._Element
        :raise IssuerMismatchError: if idp_issuer is configured and the message
            has no or another Issuer
        """
        expected = self.config["idp_issuer"]
        if not expected:
            return
        issuer = find_text(element, "saml:Issuer")
        if issuer is None:
            raise IssuerMismatchError("Missing SAML issuer")
        if issuer != expected:
            raise IssuerMismatchError(
                "Unknown SAML issuer. Expected: {} Received: {}".format(expected, issuer)
            )

    def verify_logout_request(self, root):
        self.verify_issuer(root)
        self.extractor.check_timestamps_validity(
            self.extractor.clock(), root.get("NotBefore"), root.get("NotOnOrAfter")
        )

    def verify_logout_response(self, root):
        """
        :type root: lxml.etree._Element
        :raise ProviderStatusError: if the status is not Success
        :raise ReplayValidationError: if InResponseTo does not match a logout request
        """
        status_code = root.find("samlp:Status/samlp:StatusCode", namespaces=NAMESPACES)
        value = status_code.get("Value") if status_code is not None else None
        if value != STATUS_SUCCESS:
            status = root.find("samlp:Status", namespaces=NAMESPACES)
            raise ProviderStatusError(
                "Bad status code: {}".format(value),
                status_code=value,
                status_message=find_text(root, "samlp:Status/samlp:StatusMessage"),
                status_xml=to_string(status) if status is not None else None,
            )

        self.verify_issuer(root)

        in_response_to = root.get("InResponseTo")
        if in_response_to and self.config["validate_in_response_to"]:
            try:
                if self.cache.get(in_response_to) is None:
                    raise ReplayValidationError("InResponseTo is not valid")
            finally:
                self.cache.remove(in_response_to)
        samlsp_logging(logger, logging.DEBUG, "LogoutResponse accepted", in_response_to)

    def _logout_request_profile(self, root):
        request_id = root.get("ID")
        if not request_id:
            raise MalformedMessageError("Missing SAML LogoutRequest ID")
        issuer = find_text(root, "saml:Issuer")
        if issuer is None:
            raise IssuerMismatchError("Missing SAML issuer")
        name_id = root.find("saml:NameID", namespaces=NAMESPACES)
        if name_id is None:
            raise MalformedMessageError("Missing SAML NameID")

        profile = Profile(
            id=request_id,
            issuer=issuer,
            name_id=element_text(name_id),
            name_id_format=name_id.get("Format"),
            name_qualifier=name_id.get("NameQualifier"),
            sp_name_qualifier=name_id.get("SPNameQualifier"),
            session_index=find_text(root, "samlp:SessionIndex"),
        )
        samlsp_logging(logger, logging.DEBUG, "LogoutRequest accepted for {}".format(profile.name_id), request_id)
        return profile
