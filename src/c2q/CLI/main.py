"""
Command Line Interface for C2Q.
"""
import logging
import sys

import click

from ..CONVERTERS.convert import convert_compose
from ..MODELS.quadlet import Install, Unit
from ..PARSERS.compose_parser import ComposeParser, find_compose_file
from ..RENDERERS.output_writer import OutputWriter
from ..exceptions import ComposeConversionError, format_error_chain


@click.group()
@click.option('--file', '-f', default=None,
              help='Compose file path, "-" for stdin. Defaults to stdin when it is not a terminal, '
                   'else compose.yaml, compose.yml, docker-compose.yaml or docker-compose.yml.')
@click.option('--verbose', '-v', is_flag=True, help='Log each converted entity')
@click.pass_context
def cli(ctx, file, verbose):
    """
    C2Q - Compose to Quadlet converter.

    Turns Docker Compose applications into Podman Quadlet files.
    """
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def load_document(file):
    """
    Parses the compose file selected on the command line.
    """
    parser = ComposeParser()
    if file is None:
        if not sys.stdin.isatty():
            return parser.parse_stdin()
        file = find_compose_file()
    return parser.parse(file)


def build_sections(description, wants, requires, after, before, wanted_by, required_by):
    """
    Builds the Unit and Install templates shared by every produced file.
    """
    unit = None
    if description or wants or requires or after or before:
        unit = Unit(
            description=description,
            wants=list(wants),
            requires=list(requires),
            after=list(after),
            before=list(before),
        )
    install = None
    if wanted_by or required_by:
        install = Install(wanted_by=list(wanted_by), required_by=list(required_by))
    return unit, install


@cli.command()
@click.option('--pod', is_flag=True,
              help='Create a .pod file and link each .container file to it. '
                   'Requires the top-level `name`; containers are renamed to "{pod}-{container}" '
                   'and their published ports move to the pod.')
@click.option('--kube', is_flag=True,
              help='Create Kubernetes YAML for a single pod and a .kube file using it, '
                   'instead of separate containers. Requires the top-level `name`.')
@click.option('--out', '-o', default=None, help='Output directory, stdout when omitted')
@click.option('--overwrite', is_flag=True, help='Replace existing files in the output directory')
@click.option('--description', default=None, help='[Unit] Description= of every file')
@click.option('--wants', multiple=True, help='[Unit] Wants= of every file')
@click.option('--requires', multiple=True, help='[Unit] Requires= of every file')
@click.option('--after', multiple=True, help='[Unit] After= of every file')
@click.option('--before', multiple=True, help='[Unit] Before= of every file')
@click.option('--wanted-by', multiple=True, help='[Install] WantedBy= of every file')
@click.option('--required-by', multiple=True, help='[Install] RequiredBy= of every file')
@click.pass_context
def compose(ctx, pod, kube, out, overwrite, description, wants, requires, after, before, wanted_by, required_by):
    """Convert a compose file into Quadlet files"""
    if pod and kube:
        raise click.UsageError("--pod and --kube are mutually exclusive")

    unit, install = build_sections(description, wants, requires, after, before, wanted_by, required_by)
    try:
        document = load_document(ctx.obj.get('file'))
        artifacts = convert_compose(document, pod=pod, kube=kube, unit=unit, install=install)
    except ComposeConversionError as e:
        raise click.ClickException(format_error_chain(e)) from e

    writer = OutputWriter(overwrite=overwrite)
    if out is None:
        click.echo(writer.to_string(artifacts), nl=False)
        return

    try:
        paths = writer.write(artifacts, out)
    except FileExistsError as e:
        raise click.ClickException(str(e)) from e
    for path in paths:
        click.echo(f"Wrote {path}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
