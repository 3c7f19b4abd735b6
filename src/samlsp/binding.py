"""
Encoding of SAML messages for the HTTP-Redirect and HTTP-POST bindings.
"""
import base64
import binascii
import logging
import zlib
from urllib.parse import parse_qsl
from urllib.parse import urlencode
from urllib.parse import urlsplit
from urllib.parse import urlunsplit

from samlsp.exception import MalformedMessageError
from samlsp.util import quote_component
from samlsp.util import quoteattr


logger = logging.getLogger(__name__)

# A deflated SAML message is small, refuse to inflate more than this
MAX_INFLATED_SIZE = 1024 * 1024

POST_FORM_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta http-equiv="x-ua-compatible" content="ie=edge">
</head>
<body onload="document.forms[0].submit()">
<noscript>
<p><strong>Note:</strong> Since your browser does not support JavaScript, you must press the button below once to proceed.</p>
</noscript>
<form method="post" action="{action}">
{inputs}
<input type="submit" value="Submit">
</form>
<script>document.forms[0].style.visibility="hidden";</script>
</body>
</html>"""

_HIDDEN_INPUT = '<input type="hidden" name="{name}" value="{value}" />'


def deflate_and_base64_encode(message):
    """
    Raw deflate (no zlib header) followed by base64, as required by the
    HTTP-Redirect binding.

    :type message: str | bytes
    :rtype: str
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    deflated = compressor.compress(message) + compressor.flush()
    return base64.b64encode(deflated).decode("ascii")


def base64_encode(message):
    if isinstance(message, str):
        message = message.encode("utf-8")
    return base64.b64encode(message).decode("ascii")


def base64_decode(data):
    """
    :type data: str | bytes
    :rtype: bytes
    :raise MalformedMessageError: if the data is not base64
    """
    if isinstance(data, str):
        data = data.encode("ascii", errors="replace")
    try:
        return base64.b64decode(b"".join(data.split()))
    except (binascii.Error, ValueError) as err:
        raise MalformedMessageError("Message is not valid base64") from err


def inflate(data, max_size=MAX_INFLATED_SIZE):
    """
    Raw inflate of a message received with the HTTP-Redirect binding.

    :type data: bytes
    :type max_size: int
    :rtype: bytes

    :param data: the deflated octets
    :param max_size: the largest accepted inflated size
    :raise MalformedMessageError: if the data can not be inflated or is too large
    """
    decompressor = zlib.decompressobj(-15)
    try:
        inflated = decompressor.decompress(data, max_size)
    except zlib.error as err:
        raise MalformedMessageError("Message could not be inflated") from err
    if decompressor.unconsumed_tail:
        raise MalformedMessageError("Inflated message exceeds {} bytes".format(max_size))
    return inflated


def decode_redirect_message(data):
    """
    :type data: str
    :rtype: bytes
    :return: the XML of a SAMLRequest or SAMLResponse query parameter
    """
    return inflate(base64_decode(data))


def build_redirect_url(target, saml_message):
    """
    Appends the message parameters to the destination, keeping any query
    parameters the destination already has.

    :type target: str
    :type saml_message: dict[str, str]
    :rtype: str

    :param target: IdP endpoint
    :param saml_message: query parameters (SAMLRequest, RelayState, SigAlg, Signature, ...)
    :return: the URL to redirect the user agent to
    """
    scheme, netloc, path, query, fragment = urlsplit(target)
    params = parse_qsl(query, keep_blank_values=True)
    params.extend((key, str(value)) for key, value in saml_message.items() if value is not None)
    query = urlencode(params, quote_via=lambda value, *args: quote_component(value))
    return urlunsplit((scheme, netloc, path, query, fragment))


def build_post_form(action, saml_message):
    """
    Renders a page that posts the message to the IdP when loaded.

    :type action: str
    :type saml_message: dict[str, str]
    :rtype: str

    :param action: IdP endpoint
    :param saml_message: form fields (SAMLRequest, RelayState, ...)
    :return: the HTML page
    """
    inputs = "\n".join(
        _HIDDEN_INPUT.format(name=quoteattr(name), value=quoteattr(value))
        for name, value in saml_message.items()
        if value is not None
    )
    return POST_FORM_TEMPLATE.format(action=quoteattr(action), inputs=inputs)
