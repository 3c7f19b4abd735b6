from importlib.metadata import version as _resolve_package_version


def _parse_version():
    value = _resolve_package_version("samlsp")
    return value


version = _parse_version()
