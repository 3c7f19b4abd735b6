"""
YAML loading for configuration files.

Besides plain YAML two tags are understood:

    private_cert: !ENV SP_SIGNING_KEY         # value of the variable
    decryption_pvk: !ENVFILE SP_DECRYPT_FILE  # content of the file it names
"""
import os

import yaml
from yaml import YAMLError

TAG_ENV = "!ENV"
TAG_ENVFILE = "!ENVFILE"


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with the environment tags registered."""


def _constructor_env_variables(loader, node):
    """
    :param yaml.Loader loader: the yaml loader
    :param node: the current node in the yaml
    :return: value of the environment variable
    """
    raw_value = loader.construct_scalar(node)
    new_value = os.environ.get(raw_value)
    if new_value is None:
        raise YAMLError("Environment variable '{}' is not set".format(raw_value))
    return new_value


def _constructor_envfile_variables(loader, node):
    """
    :param yaml.Loader loader: the yaml loader
    :param node: the current node in the yaml
    :return: content of the file the environment variable points to
    """
    raw_value = loader.construct_scalar(node)
    filepath = os.environ.get(raw_value)
    try:
        with open(filepath, "r") as fd:
            return fd.read()
    except (TypeError, IOError) as e:
        msg = "Cannot read file named by '{var}': {path}".format(var=raw_value, path=filepath)
        raise YAMLError(msg) from e


ConfigLoader.add_constructor(TAG_ENV, _constructor_env_variables)
ConfigLoader.add_constructor(TAG_ENVFILE, _constructor_envfile_variables)


def load(stream):
    return yaml.load(stream, Loader=ConfigLoader)


__all__ = ["load", "YAMLError", "TAG_ENV", "TAG_ENVFILE"]
