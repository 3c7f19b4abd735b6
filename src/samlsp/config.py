"""
This module contains methods to load, verify and build the configuration of the service provider.
"""
import logging
import os
import os.path

from samlsp.cache import DEFAULT_KEY_EXPIRATION_PERIOD_MS
from samlsp.cache import InMemoryCacheProvider
from samlsp.certificates import RemoteCertificateResolver
from samlsp.exception import SAMLSPConfigurationError
from samlsp.messages import AUTHN_CONTEXT_COMPARISONS
from samlsp.messages import NAMEID_FORMAT_EMAILADDRESS
from samlsp.messages import PASSWORD_PROTECTED_TRANSPORT
from samlsp.sigver import SIGNATURE_ALGORITHMS
from samlsp.yaml import YAMLError
from samlsp.yaml import load as yaml_load


logger = logging.getLogger(__name__)

DEFAULTS = {
    "logout_url": None,
    "issuer": "onelogin_saml",
    "callback_url": None,
    "path": "/saml/consume",
    "host": "localhost",
    "protocol": "https://",
    "identifier_format": NAMEID_FORMAT_EMAILADDRESS,
    "authn_context": [PASSWORD_PROTECTED_TRANSPORT],
    "disable_requested_authn_context": False,
    "rac_comparison": "exact",
    "accepted_clock_skew_ms": 0,
    "validate_in_response_to": False,
    "request_id_expiration_period_ms": DEFAULT_KEY_EXPIRATION_PERIOD_MS,
    "cache_provider": None,
    "signature_algorithm": "sha1",
    "private_cert": None,
    "decryption_pvk": None,
    "cert": None,
    "cert_url": None,
    "cert_url_timeout": 5,
    "idp_issuer": None,
    "audience": None,
    "force_authn": False,
    "passive": False,
    "skip_request_compression": False,
    "disable_request_acs_url": False,
    "attribute_consuming_service_index": None,
    "provider_name": None,
    "additional_params": {},
    "additional_authorize_params": {},
    "additional_logout_params": {},
    "logout_callback_url": None,
}


class SPConfig(object):
    """
    A configuration class for the service provider. Verifies that the given config holds all the
    necessary parameters and fills in the defaults.
    """
    sensitive_dict_keys = ["private_cert", "decryption_pvk"]
    mandatory_dict_keys = ["entry_point"]

    def __init__(self, config):
        """
        Reads a given config and builds the SPConfig.

        :type config: str | dict
        :rtype: samlsp.config.SPConfig

        :param config: Can be a file path or a dictionary
        :return: A verified SPConfig
        """
        parsers = [self._load_dict, self._load_yaml]
        loaded = None
        for parser in parsers:
            loaded = parser(config)
            if loaded is not None:
                break

        self._verify_dict(loaded)
        self._config = dict(DEFAULTS)
        self._config.update({key: value for key, value in loaded.items() if value is not None})
        # an explicit null turns the NameIDPolicy off
        if "identifier_format" in loaded and loaded["identifier_format"] is None:
            self._config["identifier_format"] = None

        # Load sensitive config from environment variables
        for key in SPConfig.sensitive_dict_keys:
            val = os.environ.get("SAMLSP_{key}".format(key=key.upper()))
            if val:
                self._config[key] = val

        self._resolve()

    def _verify_dict(self, conf):
        """
        Check that the configuration contains all necessary keys.

        :type conf: dict
        :rtype: None
        :raise SAMLSPConfigurationError: if the configuration is incorrect

        :param conf: config to verify
        :return: None
        """
        if not conf:
            raise SAMLSPConfigurationError("Missing configuration or unknown format")

        for key in SPConfig.mandatory_dict_keys:
            if not conf.get(key):
                raise SAMLSPConfigurationError("Missing key '%s' in config" % key)

        if "cert" in conf and not conf["cert"]:
            raise SAMLSPConfigurationError("Invalid property: cert must not be empty")

    def _resolve(self):
        conf = self._config

        if not conf["logout_url"]:
            conf["logout_url"] = conf["entry_point"]

        if isinstance(conf["authn_context"], str):
            conf["authn_context"] = [conf["authn_context"]]

        if conf["rac_comparison"] not in AUTHN_CONTEXT_COMPARISONS:
            logger.warning(
                "rac_comparison '{}' is not one of {}, using 'exact'".format(
                    conf["rac_comparison"], AUTHN_CONTEXT_COMPARISONS
                )
            )
            conf["rac_comparison"] = "exact"

        if conf["signature_algorithm"] not in SIGNATURE_ALGORITHMS:
            raise SAMLSPConfigurationError(
                "signature_algorithm must be one of {}".format(sorted(SIGNATURE_ALGORITHMS))
            )

        if conf["cert_url"] and not conf["cert"]:
            conf["cert"] = RemoteCertificateResolver(conf["cert_url"], timeout=conf["cert_url_timeout"])

        if conf["cache_provider"] is None:
            conf["cache_provider"] = InMemoryCacheProvider(
                key_expiration_period_ms=conf["request_id_expiration_period_ms"]
            )

        if not conf["cert"]:
            logger.warning("No IdP certificate configured, signatures of received messages will not be checked")

    def __getitem__(self, item):
        """
        Returns data bound to the key 'item'.

        :type item: str
        :rtype object

        :param item: key to data
        :return: data bound to key 'item'
        """
        return self._config[item]

    def __contains__(self, key):
        return key in self._config

    def get(self, item, default=None):
        return self._config.get(item, default)

    def _load_dict(self, config):
        """
        Load config from dict

        :type config: dict
        :rtype: dict

        :param config: config to load
        :return: Loaded config
        """
        if isinstance(config, dict):
            return config

        return None

    def _load_yaml(self, config_file):
        """
        Load config from yaml file

        :type config_file: str
        :rtype: dict

        :param config_file: path of the file to load
        :return: Loaded config
        """
        try:
            with open(os.path.abspath(config_file)) as f:
                return yaml_load(f.read())
        except YAMLError as exc:
            logger.error("Could not parse config as YAML: {}".format(exc))
            if hasattr(exc, 'problem_mark'):
                mark = exc.problem_mark
                logger.error("Error position: ({line}:{column})".format(line=mark.line + 1, column=mark.column + 1))
        except (IOError, TypeError) as e:
            logger.error("Could not open config file: {}".format(e))

        return None
