# -*- coding: utf-8 -*-
"""
    samlsp
    ~~~~~~~~~~~~~~~~

    The Service Provider side of SAML 2.0 Web Browser SSO and Single Logout.
    Builds AuthnRequest/LogoutRequest/LogoutResponse messages and validates,
    decrypts and parses the Identity Provider's answers.

    :license: APACHE 2.0, see LICENSE for more details.
"""
