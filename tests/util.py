"""
Contains help methods and classes to perform tests.
"""
import base64
import datetime
import zlib

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from Cryptodome.Cipher import AES
from Cryptodome.Cipher import PKCS1_OAEP
from Cryptodome.PublicKey import RSA
from Cryptodome.Random import get_random_bytes
from lxml import etree

from samlsp.sigver import SIG_RSA_SHA256
from samlsp.sigver import sign_redirect_message
from samlsp.util import generate_instant
from samlsp.util import generate_unique_id
from samlsp.util import utcnow
from samlsp.xml_util import DS_NS
from samlsp.xml_util import SAML_NS
from samlsp.xml_util import SAMLP_NS
from samlsp.xml_util import STATUS_SUCCESS
from samlsp.xml_util import XENC_NS
from samlsp.xmlenc import AES256_CBC

IDP_ENTITY_ID = "https://idp.example.com/saml2"
SP_ENTITY_ID = "https://sp.example.com/metadata"
ACS_URL = "https://sp.example.com/saml/consume"

EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
TRANSFORM_ENVELOPED = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"
DIGEST_SHA256 = "http://www.w3.org/2001/04/xmlenc#sha256"
AES128_GCM = "http://www.w3.org/2009/xmlenc11#aes128-gcm"
RSA_OAEP_MGF1P = "http://www.w3.org/2001/04/xmlenc#rsa-oaep-mgf1p"


def create_certificate(cert_info):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, cert_info["country_code"]),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, cert_info["state"]),
        x509.NameAttribute(NameOID.LOCALITY_NAME, cert_info["city"]),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, cert_info["organization"]),
        x509.NameAttribute(NameOID.COMMON_NAME, cert_info["cn"]),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - datetime.timedelta(days=1)
    ).not_valid_after(
        now + datetime.timedelta(days=10)
    ).sign(key, hashes.SHA256())

    cert_str = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    key_str = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    return cert_str, key_str


def generate_cert(cn="test"):
    cert_info = {
        "cn": cn,
        "country_code": "SE",
        "state": "ac",
        "city": "Umea",
        "organization": "ITS",
    }
    return create_certificate(cert_info)


def write_cert(cert_path, key_path, cn="test"):
    cert, key = generate_cert(cn)
    with open(cert_path, "w") as cert_file:
        cert_file.write(cert)
    with open(key_path, "w") as key_file:
        key_file.write(key)


def _ds(name):
    return "{{{}}}{}".format(DS_NS, name)


def _saml(name):
    return "{{{}}}{}".format(SAML_NS, name)


def _samlp(name):
    return "{{{}}}{}".format(SAMLP_NS, name)


def _xenc(name):
    return "{{{}}}{}".format(XENC_NS, name)


def sign_element(element, key_pem, ref_id=None):
    """
    Adds an enveloped signature (exc-c14n, RSA-SHA256) to element, placed
    right after its Issuer.

    :param element: the element to sign, must carry an ID
    :param key_pem: the signing key
    :param ref_id: the id to reference, defaults to the element's ID
    :return: the Signature element
    """
    ref_id = ref_id or element.get("ID")
    digest = hashes.Hash(hashes.SHA256())
    digest.update(etree.tostring(element, method="c14n", exclusive=True))
    digest_value = base64.b64encode(digest.finalize()).decode("ascii")

    signature = etree.Element(_ds("Signature"), nsmap={"ds": DS_NS})
    signed_info = etree.SubElement(signature, _ds("SignedInfo"))
    etree.SubElement(signed_info, _ds("CanonicalizationMethod"), Algorithm=EXC_C14N)
    etree.SubElement(signed_info, _ds("SignatureMethod"), Algorithm=SIG_RSA_SHA256)
    reference = etree.SubElement(signed_info, _ds("Reference"), URI="#" + ref_id)
    transforms = etree.SubElement(reference, _ds("Transforms"))
    etree.SubElement(transforms, _ds("Transform"), Algorithm=TRANSFORM_ENVELOPED)
    etree.SubElement(transforms, _ds("Transform"), Algorithm=EXC_C14N)
    etree.SubElement(reference, _ds("DigestMethod"), Algorithm=DIGEST_SHA256)
    etree.SubElement(reference, _ds("DigestValue")).text = digest_value
    signature_value = etree.SubElement(signature, _ds("SignatureValue"))

    issuer = element.find(_saml("Issuer"))
    element.insert(element.index(issuer) + 1 if issuer is not None else 0, signature)

    key = serialization.load_pem_private_key(key_pem.encode("ascii"), password=None)
    signed_info_c14n = etree.tostring(signed_info, method="c14n", exclusive=True)
    signature_value.text = base64.b64encode(
        key.sign(signed_info_c14n, padding.PKCS1v15(), hashes.SHA256())
    ).decode("ascii")
    return signature


def encrypt_element(element, cert_pem, algorithm=AES256_CBC, detached_key=False):
    """
    Returns a saml:EncryptedAssertion holding element encrypted with
    AES-256-CBC or AES-128-GCM, the key transported with RSA-OAEP.

    :param detached_key: put the EncryptedKey next to the EncryptedData,
        referenced by a RetrievalMethod
    """
    plaintext = etree.tostring(element)
    if algorithm == AES128_GCM:
        content_key = get_random_bytes(16)
        nonce = get_random_bytes(12)
        encrypted, tag = AES.new(content_key, AES.MODE_GCM, nonce=nonce).encrypt_and_digest(plaintext)
        ciphertext = nonce + encrypted + tag
    else:
        content_key = get_random_bytes(32)
        iv = get_random_bytes(16)
        padding_length = 16 - len(plaintext) % 16
        padded = plaintext + get_random_bytes(padding_length - 1) + bytes([padding_length])
        ciphertext = iv + AES.new(content_key, AES.MODE_CBC, iv=iv).encrypt(padded)

    public_pem = x509.load_pem_x509_certificate(cert_pem.encode("ascii")).public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    encrypted_key_value = PKCS1_OAEP.new(RSA.import_key(public_pem)).encrypt(content_key)

    encrypted_assertion = etree.Element(
        _saml("EncryptedAssertion"), nsmap={"saml": SAML_NS, "xenc": XENC_NS, "ds": DS_NS}
    )
    encrypted_data = etree.SubElement(
        encrypted_assertion, _xenc("EncryptedData"), Type="http://www.w3.org/2001/04/xmlenc#Element"
    )
    etree.SubElement(encrypted_data, _xenc("EncryptionMethod"), Algorithm=algorithm)
    key_info = etree.SubElement(encrypted_data, _ds("KeyInfo"))
    if detached_key:
        etree.SubElement(
            key_info, _ds("RetrievalMethod"), Type=XENC_NS + "EncryptedKey", URI="#_encrypted_key"
        )
        encrypted_key = etree.Element(_xenc("EncryptedKey"), Id="_encrypted_key")
    else:
        encrypted_key = etree.SubElement(key_info, _xenc("EncryptedKey"))
    method = etree.SubElement(encrypted_key, _xenc("EncryptionMethod"), Algorithm=RSA_OAEP_MGF1P)
    etree.SubElement(method, _ds("DigestMethod"), Algorithm="http://www.w3.org/2000/09/xmldsig#sha1")
    key_cipher_data = etree.SubElement(encrypted_key, _xenc("CipherData"))
    etree.SubElement(key_cipher_data, _xenc("CipherValue")).text = base64.b64encode(
        encrypted_key_value
    ).decode("ascii")
    cipher_data = etree.SubElement(encrypted_data, _xenc("CipherData"))
    etree.SubElement(cipher_data, _xenc("CipherValue")).text = base64.b64encode(ciphertext).decode("ascii")
    if detached_key:
        encrypted_assertion.append(encrypted_key)
    return encrypted_assertion


def deflate_and_encode(xml):
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    return base64.b64encode(compressor.compress(xml) + compressor.flush()).decode("ascii")


class FakeIdP(object):
    """
    Builds the messages an IdP would send to the SP under test.
    """

    def __init__(self, cert, key, entity_id=IDP_ENTITY_ID):
        self.cert = cert
        self.key = key
        self.entity_id = entity_id

    def _instant(self, minutes=0):
        return generate_instant(utcnow() + datetime.timedelta(minutes=minutes))

    def build_assertion(
        self,
        parent=None,
        in_response_to=None,
        name_id="user@example.com",
        name_id_format="urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress",
        attributes=None,
        audience=SP_ENTITY_ID,
        not_before_minutes=-5,
        not_on_or_after_minutes=5,
        session_index="_session_index",
        subject_confirmations=1,
        conditions=1,
    ):
        """
        :param attributes: list of (name, [values]) in document order
        """
        tag = _saml("Assertion")
        if parent is None:
            assertion = etree.Element(tag, nsmap={"saml": SAML_NS})
        else:
            assertion = etree.SubElement(parent, tag)
        assertion.set("ID", generate_unique_id())
        assertion.set("Version", "2.0")
        assertion.set("IssueInstant", self._instant())
        etree.SubElement(assertion, _saml("Issuer")).text = self.entity_id

        subject = etree.SubElement(assertion, _saml("Subject"))
        name_id_element = etree.SubElement(subject, _saml("NameID"), Format=name_id_format)
        name_id_element.text = name_id
        for _ in range(subject_confirmations):
            confirmation = etree.SubElement(
                subject, _saml("SubjectConfirmation"), Method="urn:oasis:names:tc:SAML:2.0:cm:bearer"
            )
            data = etree.SubElement(
                confirmation,
                _saml("SubjectConfirmationData"),
                NotOnOrAfter=self._instant(not_on_or_after_minutes),
                Recipient=ACS_URL,
            )
            if in_response_to:
                data.set("InResponseTo", in_response_to)

        for _ in range(conditions):
            condition = etree.SubElement(
                assertion,
                _saml("Conditions"),
                NotBefore=self._instant(not_before_minutes),
                NotOnOrAfter=self._instant(not_on_or_after_minutes),
            )
            if audience:
                restriction = etree.SubElement(condition, _saml("AudienceRestriction"))
                etree.SubElement(restriction, _saml("Audience")).text = audience

        etree.SubElement(
            assertion, _saml("AuthnStatement"), AuthnInstant=self._instant(), SessionIndex=session_index
        )

        if attributes:
            statement = etree.SubElement(assertion, _saml("AttributeStatement"))
            for name, values in attributes:
                attribute = etree.SubElement(statement, _saml("Attribute"), Name=name)
                for value in values:
                    etree.SubElement(attribute, _saml("AttributeValue")).text = value
        return assertion

    def create_response(
        self,
        in_response_to=None,
        sign_response=False,
        sign_assertion=True,
        encrypt_with=None,
        assertions=1,
        status=STATUS_SUCCESS,
        nested_status=None,
        status_message=None,
        **assertion_kwargs
    ):
        """
        :return: the Response XML
        :rtype: bytes
        """
        response = etree.Element(_samlp("Response"), nsmap={"samlp": SAMLP_NS, "saml": SAML_NS})
        response.set("ID", generate_unique_id())
        response.set("Version", "2.0")
        response.set("IssueInstant", self._instant())
        response.set("Destination", ACS_URL)
        if in_response_to:
            response.set("InResponseTo", in_response_to)
        etree.SubElement(response, _saml("Issuer")).text = self.entity_id

        status_element = etree.SubElement(response, _samlp("Status"))
        status_code = etree.SubElement(status_element, _samlp("StatusCode"), Value=status)
        if nested_status:
            etree.SubElement(status_code, _samlp("StatusCode"), Value=nested_status)
        if status_message:
            etree.SubElement(status_element, _samlp("StatusMessage")).text = status_message

        for _ in range(assertions):
            if encrypt_with:
                assertion = self.build_assertion(in_response_to=in_response_to, **assertion_kwargs)
                if sign_assertion:
                    sign_element(assertion, self.key)
                response.append(encrypt_element(assertion, encrypt_with))
            else:
                assertion = self.build_assertion(parent=response, in_response_to=in_response_to, **assertion_kwargs)
                if sign_assertion:
                    sign_element(assertion, self.key)

        if sign_response:
            sign_element(response, self.key)
        return etree.tostring(response)

    def create_logout_request(self, name_id="user@example.com", session_index="_session_index",
                              name_id_format="urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress",
                              not_on_or_after_minutes=5, sign=False):
        request = etree.Element(_samlp("LogoutRequest"), nsmap={"samlp": SAMLP_NS, "saml": SAML_NS})
        request.set("ID", generate_unique_id())
        request.set("Version", "2.0")
        request.set("IssueInstant", self._instant())
        request.set("NotOnOrAfter", self._instant(not_on_or_after_minutes))
        etree.SubElement(request, _saml("Issuer")).text = self.entity_id
        name_id_element = etree.SubElement(request, _saml("NameID"), Format=name_id_format)
        name_id_element.text = name_id
        if session_index:
            etree.SubElement(request, _samlp("SessionIndex")).text = session_index
        if sign:
            sign_element(request, self.key)
        return etree.tostring(request)

    def create_logout_response(self, in_response_to=None, status=STATUS_SUCCESS, sign=False):
        response = etree.Element(_samlp("LogoutResponse"), nsmap={"samlp": SAMLP_NS, "saml": SAML_NS})
        response.set("ID", generate_unique_id())
        response.set("Version", "2.0")
        response.set("IssueInstant", self._instant())
        if in_response_to:
            response.set("InResponseTo", in_response_to)
        etree.SubElement(response, _saml("Issuer")).text = self.entity_id
        status_element = etree.SubElement(response, _samlp("Status"))
        etree.SubElement(status_element, _samlp("StatusCode"), Value=status)
        if sign:
            sign_element(response, self.key)
        return etree.tostring(response)

    def post_envelope(self, xml, field="SAMLResponse", relay_state=None):
        envelope = {field: base64.b64encode(xml).decode("ascii")}
        if relay_state:
            envelope["RelayState"] = relay_state
        return envelope

    def redirect_envelope(self, xml, field="SAMLRequest", relay_state=None, sign=True, signature_algorithm="sha256"):
        envelope = {field: deflate_and_encode(xml)}
        if relay_state:
            envelope["RelayState"] = relay_state
        if sign:
            sign_redirect_message(envelope, self.key, signature_algorithm)
        return envelope
