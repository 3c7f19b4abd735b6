"""
Construction of the messages the SP sends to the IdP and their encoding for
the HTTP-Redirect and HTTP-POST bindings.
"""
import logging

from samlsp.binding import base64_encode
from samlsp.binding import build_post_form
from samlsp.binding import build_redirect_url
from samlsp.binding import deflate_and_base64_encode
from samlsp.exception import CacheError
from samlsp.exception import SAMLSPConfigurationError
from samlsp.logging_util import samlsp_logging
from samlsp.messages import AuthnRequest
from samlsp.messages import LogoutRequest
from samlsp.messages import LogoutResponse
from samlsp.messages import NameID
from samlsp.messages import NameIDPolicy
from samlsp.messages import RequestedAuthnContext
from samlsp.sigver import sign_redirect_message
from samlsp.util import generate_instant
from samlsp.util import generate_unique_id


logger = logging.getLogger(__name__)

OPERATION_AUTHORIZE = "authorize"
OPERATION_LOGOUT = "logout"


class RequestBuilder(object):
    """
    Builds AuthnRequest, LogoutRequest and LogoutResponse messages.

    Request ids are saved to the configured cache provider so that the
    answers can be correlated: always for logout requests, and for
    authentication requests when validate_in_response_to is enabled.
    """

    def __init__(self, config):
        """
        :type config: samlsp.config.SPConfig
        """
        self.config = config
        self.cache = config["cache_provider"]

    def get_callback_url(self):
        """
        :rtype: str
        :return: the assertion consumer service URL
        """
        if self.config["callback_url"]:
            return self.config["callback_url"]
        return "{}{}{}".format(self.config["protocol"], self.config["host"], self.config["path"])

    def _persist_request_id(self, request_id, instant):
        try:
            existing = self.cache.get(request_id)
            if existing is None:
                self.cache.save(request_id, instant)
        except Exception as err:
            samlsp_logging(logger, logging.ERROR, "Failed to save request id", request_id, exc_info=True)
            raise CacheError("Failed to save request id {}".format(request_id)) from err
        if existing is not None:
            raise CacheError("Request id {} is already in the cache".format(request_id))

    def build_authn_request(self, is_passive=False, force_authn=False):
        """
        :type is_passive: bool
        :type force_authn: bool
        :rtype: str

        :param is_passive: ask the IdP not to interact with the user
        :param force_authn: ask the IdP to re-authenticate the user
        :return: the AuthnRequest XML
        :raise CacheError: if the request id must be saved and could not be
        """
        request_id = generate_unique_id()
        instant = generate_instant()

        if self.config["validate_in_response_to"]:
            self._persist_request_id(request_id, instant)

        name_id_policy = None
        if self.config["identifier_format"]:
            name_id_policy = NameIDPolicy(self.config["identifier_format"], allow_create=True)

        requested_authn_context = None
        if not self.config["disable_requested_authn_context"]:
            requested_authn_context = RequestedAuthnContext(
                self.config["authn_context"], comparison=self.config["rac_comparison"]
            )

        request = AuthnRequest(
            request_id,
            instant,
            destination=self.config["entry_point"],
            issuer=self.config["issuer"],
            assertion_consumer_service_url=(
                None if self.config["disable_request_acs_url"] else self.get_callback_url()
            ),
            is_passive=is_passive or self.config["passive"],
            force_authn=force_authn or self.config["force_authn"],
            attribute_consuming_service_index=self.config["attribute_consuming_service_index"],
            provider_name=self.config["provider_name"],
            name_id_policy=name_id_policy,
            requested_authn_context=requested_authn_context,
        )
        samlsp_logging(logger, logging.DEBUG, "Built AuthnRequest", request_id)
        return request.to_string()

    def build_logout_request(self, user):
        """
        :type user: samlsp.internal.Profile | dict
        :rtype: str

        :param user: the profile the user logged in with
        :return: the LogoutRequest XML
        :raise CacheError: if the request id could not be saved
        """
        request_id = generate_unique_id()
        instant = generate_instant()

        name_id = NameID(
            user.get("name_id"),
            format=user.get("name_id_format"),
            name_qualifier=user.get("name_qualifier"),
            sp_name_qualifier=user.get("sp_name_qualifier"),
        )
        request = LogoutRequest(
            request_id,
            instant,
            name_id,
            destination=self.config["logout_url"],
            issuer=self.config["issuer"],
            session_index=user.get("session_index"),
        )

        self._persist_request_id(request_id, instant)
        samlsp_logging(logger, logging.DEBUG, "Built LogoutRequest", request_id)
        return request.to_string()

    def build_logout_response(self, in_response_to):
        """
        :type in_response_to: str
        :rtype: str

        :param in_response_to: id of the LogoutRequest being answered
        :return: a LogoutResponse XML with Success status
        """
        response = LogoutResponse(
            generate_unique_id(),
            generate_instant(),
            in_response_to,
            destination=self.config["logout_url"],
            issuer=self.config["issuer"],
        )
        samlsp_logging(logger, logging.DEBUG, "Built LogoutResponse", in_response_to)
        return response.to_string()

    def get_additional_params(self, operation, relay_state=None, override_params=None):
        """
        Collects the extra query parameters sent along with a message. Later
        sources win: RelayState, additional_params, the operation specific
        parameters and finally override_params.

        :type operation: str
        :type relay_state: str | None
        :type override_params: dict[str, str] | None
        :rtype: dict[str, str]
        """
        params = {}
        if relay_state:
            params["RelayState"] = relay_state
        params.update(self.config["additional_params"] or {})
        if operation == OPERATION_AUTHORIZE:
            params.update(self.config["additional_authorize_params"] or {})
        elif operation == OPERATION_LOGOUT:
            params.update(self.config["additional_logout_params"] or {})
        params.update(override_params or {})
        return params

    def _target(self, operation):
        if operation == OPERATION_AUTHORIZE:
            return self.config["entry_point"]
        if operation == OPERATION_LOGOUT:
            return self.config["logout_url"] or self.config["entry_point"]
        raise SAMLSPConfigurationError("Unknown operation: {}".format(operation))

    def to_redirect_url(self, request=None, response=None, operation=OPERATION_AUTHORIZE, additional_params=None):
        """
        Encodes a message for the HTTP-Redirect binding, signing the query
        when a private_cert is configured.

        :type request: str | None
        :type response: str | None
        :type operation: str
        :type additional_params: dict[str, str] | None
        :rtype: str

        :param request: a request XML, sent as SAMLRequest
        :param response: a response XML, sent as SAMLResponse
        :param operation: authorize or logout, selects the destination
        :param additional_params: RelayState and other query parameters
        :return: the URL to redirect the user agent to
        """
        target = self._target(operation)
        message = request or response
        if self.config["skip_request_compression"]:
            encoded = base64_encode(message)
        else:
            encoded = deflate_and_base64_encode(message)

        saml_message = {"SAMLRequest": encoded} if request else {"SAMLResponse": encoded}
        saml_message.update(additional_params or {})

        if self.config["private_cert"]:
            if not self.config["entry_point"]:
                raise SAMLSPConfigurationError('"entry_point" config parameter is required for signed messages')
            sign_redirect_message(saml_message, self.config["private_cert"], self.config["signature_algorithm"])

        return build_redirect_url(target, saml_message)

    def to_post_form(self, request, additional_params=None):
        """
        Encodes a request for the HTTP-POST binding.

        :type request: str
        :type additional_params: dict[str, str] | None
        :rtype: str

        :param request: the request XML
        :param additional_params: RelayState and other form fields
        :return: an HTML page posting the request to the entry point
        """
        saml_message = {"SAMLRequest": base64_encode(request)}
        for key, value in (additional_params or {}).items():
            saml_message[key] = value if value is not None else ""
        return build_post_form(self.config["entry_point"], saml_message)
