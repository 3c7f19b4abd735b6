"""
Exceptions for samlsp
"""


class SAMLSPError(Exception):
    """
    Base samlsp exception
    """
    pass


class SAMLSPConfigurationError(SAMLSPError):
    """
    samlsp configuration error.

    Raised at initialization for invalid options, e.g. an empty certificate
    or a key configured without its certificate.
    """
    pass


class CacheError(SAMLSPError):
    """
    The cache provider failed to persist or look up a request id.
    """
    pass


class CertificateResolutionError(SAMLSPError):
    """
    The trusted certificates could not be resolved for this validation.
    """
    pass


class MalformedMessageError(SAMLSPError):
    """
    The message could not be decoded, inflated or parsed.
    """
    pass


class UnrecognizedMessageError(SAMLSPError):
    """
    The message is neither a Response, a LogoutRequest nor a LogoutResponse.
    """
    pass


class InvalidSignatureError(SAMLSPError):
    """
    Missing, duplicate or cryptographically failing signature.
    """
    pass


class AmbiguousAssertionError(InvalidSignatureError):
    """
    More than one candidate element where exactly one is expected
    (assertions, subject confirmations or conditions).

    This is treated as a signature problem since multiple candidates is the
    shape of a signature wrapping attack.
    """
    pass


class ReplayValidationError(SAMLSPError):
    """
    InResponseTo is missing, unknown, expired or does not match.
    """
    pass


class ExpiredOrNotYetValidError(SAMLSPError):
    """
    The current time is outside a NotBefore/NotOnOrAfter window.
    """
    pass


class AudienceMismatchError(SAMLSPError):
    """
    The assertion is not restricted to the configured audience.
    """
    pass


class IssuerMismatchError(SAMLSPError):
    """
    The message issuer is missing or differs from the configured IdP issuer.
    """
    pass


class MissingDecryptionKeyError(SAMLSPError):
    """
    An EncryptedAssertion was received but no decryption key is configured.
    """
    pass


class DecryptionError(SAMLSPError):
    """
    An EncryptedAssertion could not be decrypted.
    """
    pass


class ProviderStatusError(SAMLSPError):
    """
    The IdP answered with a non-Success status.

    The raw Status element is kept so that the caller can render a
    meaningful message.
    """

    def __init__(self, message, status_code=None, status_message=None, status_xml=None):
        """
        :type message: str
        :type status_code: str
        :type status_message: str
        :type status_xml: str

        :param message: A text message
        :param status_code: The top level StatusCode value
        :param status_message: The StatusMessage text or the nested status code
        :param status_xml: The serialized Status element
        """
        super().__init__(message)
        self.status_code = status_code
        self.status_message = status_message
        self.status_xml = status_xml
