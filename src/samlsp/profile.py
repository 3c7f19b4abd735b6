"""
Extraction of the user profile from a validly signed assertion, including
the time window, audience and InResponseTo checks of the assertion.
"""
import logging
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from samlsp.exception import AmbiguousAssertionError
from samlsp.exception import AudienceMismatchError
from samlsp.exception import ExpiredOrNotYetValidError
from samlsp.exception import MalformedMessageError
from samlsp.exception import ReplayValidationError
from samlsp.internal import Profile
from samlsp.logging_util import samlsp_logging
from samlsp.util import parse_instant
from samlsp.util import utcnow
from samlsp.xml_util import NAMESPACES
from samlsp.xml_util import element_text
from samlsp.xml_util import find_text


logger = logging.getLogger(__name__)

OID_MAIL = "urn:oid:0.9.2342.19200300.100.1.3"


def _parse_instant(value, name):
    # cache providers may hand back the datetime they were given
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        return parse_instant(str(value))
    except ValueError as err:
        raise MalformedMessageError("Invalid {}: '{}'".format(name, value)) from err


class ProfileExtractor(object):
    """
    Turns an Assertion element into a samlsp.internal.Profile.
    """

    def __init__(self, config, clock=utcnow):
        """
        :type config: samlsp.config.SPConfig
        :type clock: () -> datetime.datetime

        :param config: the SP configuration
        :param clock: returns the current time as an aware datetime
        """
        self.config = config
        self.cache = config["cache_provider"]
        self.clock = clock

    def check_timestamps_validity(self, now, not_before=None, not_on_or_after=None):
        """
        :type now: datetime.datetime
        :type not_before: str | None
        :type not_on_or_after: str | None

        :param now: the current time
        :param not_before: NotBefore attribute value
        :param not_on_or_after: NotOnOrAfter attribute value
        :raise ExpiredOrNotYetValidError: if now is outside the window
        """
        skew_ms = self.config["accepted_clock_skew_ms"]
        if skew_ms == -1:
            return
        skew = timedelta(milliseconds=skew_ms)

        if not_before and now + skew < _parse_instant(not_before, "NotBefore"):
            raise ExpiredOrNotYetValidError("SAML assertion not yet valid")
        if not_on_or_after and now - skew >= _parse_instant(not_on_or_after, "NotOnOrAfter"):
            raise ExpiredOrNotYetValidError("SAML assertion expired")

    def check_audience(self, expected_audience, conditions):
        """
        Every AudienceRestriction must name the expected audience.

        :type expected_audience: str
        :type conditions: lxml.etree._Element | None
        :raise AudienceMismatchError: if there is no restriction or one does not match
        """
        restrictions = []
        if conditions is not None:
            restrictions = conditions.findall("saml:AudienceRestriction", namespaces=NAMESPACES)
        if not restrictions:
            raise AudienceMismatchError("SAML assertion has no AudienceRestriction")

        for restriction in restrictions:
            audiences = [
                element_text(audience) for audience in restriction.findall("saml:Audience", namespaces=NAMESPACES)
                if element_text(audience)
            ]
            if not audiences:
                raise AudienceMismatchError("SAML assertion AudienceRestriction has no Audience value")
            if expected_audience not in audiences:
                raise AudienceMismatchError("SAML assertion audience mismatch")

    def _check_subject_in_response_to(self, now, in_response_to, subject_in_response_to):
        """
        The request id is only looked up here. Removing it once the response
        is decided on is up to the caller.
        """
        if not subject_in_response_to:
            return
        if in_response_to and subject_in_response_to != in_response_to:
            raise ReplayValidationError("InResponseTo is not valid")

        issued = self.cache.get(subject_in_response_to)
        if issued is None:
            raise ReplayValidationError("InResponseTo is not valid")
        expiry = timedelta(milliseconds=self.config["request_id_expiration_period_ms"])
        if now >= _parse_instant(issued, "request instant") + expiry:
            raise ReplayValidationError("InResponseTo is not valid")

    def extract(self, assertion, assertion_xml, response_xml=None, in_response_to=None):
        """
        :type assertion: lxml.etree._Element
        :type assertion_xml: str
        :type response_xml: str | None
        :type in_response_to: str | None
        :rtype: samlsp.internal.Profile

        :param assertion: the validly signed assertion
        :param assertion_xml: the serialized assertion, kept on the profile
        :param response_xml: the whole response, kept on the profile
        :param in_response_to: InResponseTo of the enclosing response
        :return: the profile of the authenticated user
        """
        now = self.clock()
        profile = Profile(assertion_xml=assertion_xml, response_xml=response_xml)

        profile.issuer = find_text(assertion, "saml:Issuer")

        authn_statement = assertion.find("saml:AuthnStatement", namespaces=NAMESPACES)
        if authn_statement is not None and authn_statement.get("SessionIndex"):
            profile.session_index = authn_statement.get("SessionIndex")

        subject = assertion.find("saml:Subject", namespaces=NAMESPACES)
        confirm_data = None
        if subject is not None:
            name_id = subject.find("saml:NameID", namespaces=NAMESPACES)
            if name_id is not None and element_text(name_id):
                profile.name_id = element_text(name_id)
                if name_id.get("Format"):
                    profile.name_id_format = name_id.get("Format")
                    profile.name_qualifier = name_id.get("NameQualifier")
                    profile.sp_name_qualifier = name_id.get("SPNameQualifier")

            confirmations = subject.findall("saml:SubjectConfirmation", namespaces=NAMESPACES)
            if len(confirmations) > 1:
                raise AmbiguousAssertionError("Unable to process multiple SubjectConfirmations in SAML assertion")
            if confirmations:
                confirm_data = confirmations[0].find("saml:SubjectConfirmationData", namespaces=NAMESPACES)
                if confirm_data is not None:
                    self.check_timestamps_validity(
                        now, confirm_data.get("NotBefore"), confirm_data.get("NotOnOrAfter")
                    )

        if self.config["validate_in_response_to"] and confirm_data is not None:
            self._check_subject_in_response_to(now, in_response_to, confirm_data.get("InResponseTo"))

        conditions_list = assertion.findall("saml:Conditions", namespaces=NAMESPACES)
        if len(conditions_list) > 1:
            raise AmbiguousAssertionError("Unable to process multiple conditions in SAML assertion")
        conditions = conditions_list[0] if conditions_list else None
        if conditions is not None:
            self.check_timestamps_validity(now, conditions.get("NotBefore"), conditions.get("NotOnOrAfter"))

        if self.config["audience"]:
            self.check_audience(self.config["audience"], conditions)

        profile.attributes = self._extract_attributes(assertion)
        samlsp_logging(
            logger, logging.DEBUG,
            "Extracted profile for {} with attributes {}".format(profile.name_id, list(profile.attributes)),
            in_response_to,
        )
        return profile

    def _extract_attributes(self, assertion):
        values_by_name = {}
        for attribute in assertion.findall("saml:AttributeStatement/saml:Attribute", namespaces=NAMESPACES):
            values = attribute.findall("saml:AttributeValue", namespaces=NAMESPACES)
            if not values:
                continue
            name = attribute.get("Name")
            values_by_name.setdefault(name, []).extend(element_text(value) or "" for value in values)

        attributes = {
            name: values[0] if len(values) == 1 else values
            for name, values in values_by_name.items()
        }

        if "mail" not in attributes and OID_MAIL in attributes:
            # See https://spaces.internet2.edu/display/InCFederation/Supported+Attribute+Summary
            attributes["mail"] = attributes[OID_MAIL]
        if "email" not in attributes and "mail" in attributes:
            attributes["email"] = attributes["mail"]
        return attributes
