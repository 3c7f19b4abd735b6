"""
Decryption of XML Encryption content, as used for EncryptedAssertion.

xmlsec does the key transport and content decryption with the SP's private
key. Some IdPs put the EncryptedKey next to the EncryptedData instead of in
its KeyInfo; such a key is moved into the KeyInfo first.
"""
import copy
import logging

import xmlsec
from lxml import etree

from samlsp.exception import DecryptionError
from samlsp.xml_util import NAMESPACES
from samlsp.xml_util import qname


logger = logging.getLogger(__name__)

AES128_CBC = "http://www.w3.org/2001/04/xmlenc#aes128-cbc"
AES256_CBC = "http://www.w3.org/2001/04/xmlenc#aes256-cbc"
TRIPLEDES_CBC = "http://www.w3.org/2001/04/xmlenc#tripledes-cbc"

# The block ciphers advertised in SP metadata
METADATA_ENCRYPTION_METHODS = [AES256_CBC, AES128_CBC, TRIPLEDES_CBC]


def decrypt_element(encrypted, private_key):
    """
    Decrypts the EncryptedData found in an element like EncryptedAssertion.

    :type encrypted: lxml.etree._Element
    :type private_key: str
    :rtype: bytes

    :param encrypted: the element holding xenc:EncryptedData, left untouched
    :param private_key: PEM encoded RSA private key of the SP
    :return: the decrypted XML octets
    :raise DecryptionError: on any failure
    """
    encrypted = copy.deepcopy(encrypted)
    encrypted_data = encrypted.find(".//xenc:EncryptedData", namespaces=NAMESPACES)
    if encrypted_data is None:
        raise DecryptionError("No EncryptedData found")
    _attach_encrypted_key(encrypted, encrypted_data)

    try:
        key = xmlsec.Key.from_memory(private_key, xmlsec.constants.KeyDataFormatPem, None)
    except xmlsec.Error as err:
        raise DecryptionError("Invalid decryption key") from err
    manager = xmlsec.KeysManager()
    manager.add_key(key)

    try:
        decrypted = xmlsec.EncryptionContext(manager).decrypt(encrypted_data)
    except xmlsec.Error as err:
        raise DecryptionError("Failed to decrypt EncryptedData") from err

    if isinstance(decrypted, bytes):
        return decrypted
    return etree.tostring(decrypted)


def _attach_encrypted_key(encrypted, encrypted_data):
    if encrypted_data.find(".//xenc:EncryptedKey", namespaces=NAMESPACES) is not None:
        return
    encrypted_key = encrypted.find(".//xenc:EncryptedKey", namespaces=NAMESPACES)
    if encrypted_key is None:
        raise DecryptionError("No EncryptedKey found")

    key_info = encrypted_data.find("ds:KeyInfo", namespaces=NAMESPACES)
    if key_info is None:
        key_info = etree.Element(qname("ds", "KeyInfo"))
        method = encrypted_data.find("xenc:EncryptionMethod", namespaces=NAMESPACES)
        encrypted_data.insert(encrypted_data.index(method) + 1 if method is not None else 0, key_info)
    # the RetrievalMethod pointing at the sibling key is replaced by the key itself
    for retrieval_method in key_info.findall("ds:RetrievalMethod", namespaces=NAMESPACES):
        key_info.remove(retrieval_method)
    key_info.append(encrypted_key)
    logger.debug("Moved a detached EncryptedKey into the KeyInfo of the EncryptedData")
