import click

from samlsp.config import SPConfig
from samlsp.exception import SAMLSPConfigurationError
from samlsp.metadata import generate_service_provider_metadata
from samlsp.version import version


def _read(path):
    if not path:
        return None
    with open(path) as f:
        return f.read()


def create_and_write_saml_metadata(sp_conf, signing_cert=None, decryption_cert=None, output=None):
    """
    Generates the SP metadata for the given SP_CONF.
    """
    config = SPConfig(sp_conf)
    metadata = generate_service_provider_metadata(config, _read(decryption_cert), _read(signing_cert))

    if output:
        print("Writing metadata to '{}'".format(output))
        with open(output, "w") as f:
            f.write(metadata)
    else:
        click.echo(metadata)


@click.command()
@click.version_option(version=version)
@click.argument("sp_conf", type=click.Path(exists=True, dir_okay=False))
@click.option("--signing-cert", type=click.Path(exists=True, dir_okay=False), default=None,
              help="PEM certificate matching private_cert.")
@click.option("--decryption-cert", type=click.Path(exists=True, dir_okay=False), default=None,
              help="PEM certificate matching decryption_pvk.")
@click.option("--output", type=click.Path(dir_okay=False, writable=True), default=None,
              help="Where the metadata should be written, stdout if omitted.")
def construct_saml_metadata(sp_conf, signing_cert, decryption_cert, output):
    try:
        create_and_write_saml_metadata(sp_conf, signing_cert, decryption_cert, output)
    except SAMLSPConfigurationError as e:
        raise click.ClickException(str(e)) from e
