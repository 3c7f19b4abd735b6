"""
The service provider: entry point tying the configuration, the request
builder and the response validator together.
"""
import logging

from samlsp.config import SPConfig
from samlsp.metadata import generate_service_provider_metadata
from samlsp.profile import ProfileExtractor
from samlsp.request import OPERATION_AUTHORIZE
from samlsp.request import OPERATION_LOGOUT
from samlsp.request import RequestBuilder
from samlsp.validator import ResponseValidator


logger = logging.getLogger(__name__)


class ServiceProvider(object):
    """
    A SAML 2.0 service provider talking to a single IdP.

    Usage::

        sp = ServiceProvider({"entry_point": "https://idp.example/saml2", "cert": idp_cert})
        url = sp.get_authorize_url(relay_state="/home")
        ...
        result = sp.validate_post_response(request.form)
        if result.error:
            ...
    """

    def __init__(self, config):
        """
        :type config: samlsp.config.SPConfig | dict | str
        :param config: an SPConfig, a dict or the path of a YAML file
        """
        self.config = config if isinstance(config, SPConfig) else SPConfig(config)
        self.builder = RequestBuilder(self.config)
        self.extractor = ProfileExtractor(self.config)
        self.validator = ResponseValidator(self.config, self.extractor)

    def get_authorize_url(self, relay_state=None, additional_params=None, is_passive=False, force_authn=False):
        """
        :rtype: str
        :return: the IdP URL to redirect the user agent to for login
        """
        request = self.builder.build_authn_request(is_passive=is_passive, force_authn=force_authn)
        params = self.builder.get_additional_params(OPERATION_AUTHORIZE, relay_state, additional_params)
        return self.builder.to_redirect_url(request=request, operation=OPERATION_AUTHORIZE, additional_params=params)

    def get_authorize_form(self, relay_state=None, additional_params=None, is_passive=False, force_authn=False):
        """
        :rtype: str
        :return: an HTML page posting an AuthnRequest to the IdP
        """
        request = self.builder.build_authn_request(is_passive=is_passive, force_authn=force_authn)
        params = self.builder.get_additional_params(OPERATION_AUTHORIZE, relay_state, additional_params)
        return self.builder.to_post_form(request, additional_params=params)

    def get_logout_url(self, user, relay_state=None, additional_params=None):
        """
        :type user: samlsp.internal.Profile | dict
        :rtype: str
        :return: the IdP URL to redirect the user agent to for logout
        """
        request = self.builder.build_logout_request(user)
        params = self.builder.get_additional_params(OPERATION_LOGOUT, relay_state, additional_params)
        return self.builder.to_redirect_url(request=request, operation=OPERATION_LOGOUT, additional_params=params)

    def get_logout_response_url(self, logout_request, relay_state=None, additional_params=None):
        """
        :type logout_request: samlsp.internal.Profile
        :rtype: str

        :param logout_request: the profile returned when the IdP's LogoutRequest was validated
        :return: the IdP URL to redirect the user agent to with the LogoutResponse
        """
        response = self.builder.build_logout_response(logout_request["id"])
        params = self.builder.get_additional_params(OPERATION_LOGOUT, relay_state, additional_params)
        return self.builder.to_redirect_url(response=response, operation=OPERATION_LOGOUT, additional_params=params)

    def validate_post_response(self, envelope):
        return self.validator.validate_post_response(envelope)

    def validate_post_request(self, envelope):
        return self.validator.validate_post_request(envelope)

    def validate_redirect(self, envelope, original_query=None):
        return self.validator.validate_redirect(envelope, original_query=original_query)

    def generate_service_provider_metadata(self, decryption_cert=None, signing_cert=None):
        return generate_service_provider_metadata(self.config, decryption_cert, signing_cert)
