"""
Command-line interpreter for scadmesh
"""
from __future__ import annotations

import logging
from pathlib import Path

import click

from . import EvaluationError
from .main import evaluate, write_stl


def _define(ctx, param, value):
    res = {}
    for d in value:
        k, sep, v = d.partition("=")
        if not sep or not k:
            raise click.BadParameter(f"{d !r} is not NAME=VALUE", ctx, param)
        try:
            res[k.strip()] = float(v)
        except ValueError:
            raise click.BadParameter(f"{v !r} is not a number", ctx, param) from None
    return res


@click.command
@click.option(
    "-i",
    "--input",
    "infile",
    required=True,
    type=click.Path(dir_okay=False, readable=True, exists=True, path_type=Path),
)
@click.option(
    "-o",
    "--output",
    "outfile",
    required=True,
    type=click.Path(dir_okay=False, writable=True, readable=False, path_type=Path),
)
@click.option(
    "-D", "--define", "defines", multiple=True, callback=_define, help="Override a variable: NAME=VALUE",
)
@click.option("-n", "--name", help="Name of the STL solid. Default: the output file's name.")
@click.option("-x", "--exact", is_flag=True, help="Compute 'difference' exactly (needs build123d).")
@click.option("-d", "--debug", is_flag=True)
def main(infile, outfile, defines, name, exact, debug):
    "interpret OpenSCAD, emit STL"
    # diagnostics are reported through logging
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING, format="%(levelname)s: %(message)s")
    try:
        scene = evaluate(infile, exact=exact, overrides=defines)
        write_stl(scene, outfile, name=name)
    except EvaluationError as exc:
        raise click.ClickException(str(exc)) from None

    msg = f"{outfile}: {scene.triangle_count} triangles"
    if scene.diagnostics:
        msg += f", {len(scene.diagnostics)} problem(s)"
    click.echo(msg)


if __name__ == "__main__":
    main()
