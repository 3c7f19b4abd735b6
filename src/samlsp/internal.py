"""Internal data representation of an authenticated SAML subject."""
from __future__ import annotations

from collections import UserDict
from typing import Any, Optional, TypeVar

from samlsp.xml_util import parse_xml

TDatafySubclass = TypeVar("TDatafySubclass", bound="_Datafy")


class _Datafy(UserDict):
    def __setattr__(self, key, value):
        if key == "data":
            return super().__setattr__(key, value)

        self.__setitem__(key, value)

    def __getattr__(self, key):
        if key == "data":
            return self.data

        try:
            value = self.__getitem__(key)
        except KeyError as e:
            msg = "'{type}' object has no attribute '{attr}'".format(type=type(self), attr=key)
            raise AttributeError(msg) from e
        return value

    def to_dict(self) -> dict[str, Any]:
        """
        Converts an object to a dict
        :return: A dict representation of the object
        """
        return {
            key: value_obj.to_dict() if hasattr(value_obj, "to_dict") else value_obj
            for key, value_obj in self.items()
        }

    @classmethod
    def from_dict(cls: type[TDatafySubclass], data: dict[str, Any]) -> TDatafySubclass:
        """
        :param data: A dict representation of an object
        :return: An object
        """
        instance = cls(**data.copy())
        return instance


class Profile(_Datafy):
    """
    The identity extracted from a validated assertion or logout request.

    Attributes with a single AttributeValue are kept as a string, attributes
    with several values (also when the same attribute name is repeated) as a
    list in document order.
    """

    def __init__(
        self,
        issuer: Optional[str] = None,
        name_id: Optional[str] = None,
        name_id_format: Optional[str] = None,
        name_qualifier: Optional[str] = None,
        sp_name_qualifier: Optional[str] = None,
        session_index: Optional[str] = None,
        attributes: Optional[dict[str, Any]] = None,
        id: Optional[str] = None,
        assertion_xml: Optional[str] = None,
        response_xml: Optional[str] = None,
        *args,
        **kwargs,
    ):
        """
        :param issuer: entity id of the issuing IdP
        :param name_id: the subject's name identifier
        :param name_id_format: format of the name identifier
        :param name_qualifier: NameQualifier of the name identifier
        :param sp_name_qualifier: SPNameQualifier of the name identifier
        :param session_index: session index at the IdP, needed for logout
        :param attributes: the flattened attribute statements
        :param id: id of the received LogoutRequest, to answer it
        :param assertion_xml: the validated assertion
        :param response_xml: the whole received response
        """
        super().__init__(*args, **kwargs)
        self.issuer = issuer
        self.name_id = name_id
        self.name_id_format = name_id_format
        self.name_qualifier = name_qualifier
        self.sp_name_qualifier = sp_name_qualifier
        self.session_index = session_index
        self.attributes = attributes if attributes is not None else {}
        self.id = id
        self.assertion_xml = assertion_xml
        self.response_xml = response_xml

    def get_assertion_xml(self) -> Optional[str]:
        return self.assertion_xml

    def get_assertion(self):
        """
        :return: the parsed assertion or None
        :rtype: lxml.etree._Element | None
        """
        if not self.assertion_xml:
            return None
        return parse_xml(self.assertion_xml)

    def get_saml_response_xml(self) -> Optional[str]:
        return self.response_xml
