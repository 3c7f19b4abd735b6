import os

import pytest

from samlsp.config import SPConfig
from .util import ACS_URL
from .util import IDP_ENTITY_ID
from .util import SP_ENTITY_ID
from .util import FakeIdP
from .util import generate_cert
from .util import write_cert

ENTRY_POINT = "https://idp.example.com/saml2/sso"
LOGOUT_URL = "https://idp.example.com/saml2/slo"


@pytest.fixture(scope="session")
def idp_cert_and_key():
    return generate_cert("idp.example.com")


@pytest.fixture(scope="session")
def sp_cert_and_key():
    return generate_cert("sp.example.com")


@pytest.fixture(scope="session")
def other_cert_and_key():
    return generate_cert("attacker.example.com")


@pytest.fixture
def cert_and_key(tmpdir):
    dir_path = str(tmpdir)
    cert_path = os.path.join(dir_path, "cert.pem")
    key_path = os.path.join(dir_path, "key.pem")
    write_cert(cert_path, key_path)

    return cert_path, key_path


@pytest.fixture
def fake_idp(idp_cert_and_key):
    cert, key = idp_cert_and_key
    return FakeIdP(cert, key)


@pytest.fixture
def sp_config_dict(idp_cert_and_key):
    config = {
        "entry_point": ENTRY_POINT,
        "logout_url": LOGOUT_URL,
        "issuer": SP_ENTITY_ID,
        "callback_url": ACS_URL,
        "cert": idp_cert_and_key[0],
        "idp_issuer": IDP_ENTITY_ID,
        "audience": SP_ENTITY_ID,
    }
    return config


@pytest.fixture
def sp_config(sp_config_dict):
    return SPConfig(sp_config_dict)
