"""
CLI commands for inspecting a container's module graph.

Commands:
- stagedi check:    Validate the graph (missing modules, cycles)
- stagedi stages:   Show activation stages
- stagedi tree:     Show dependency tree
- stagedi graph:    Export dependency graph as Graphviz DOT
- stagedi manifest: Export modules and stages as JSON

TARGET is ``package.module:attribute`` naming a Container, or a
zero-argument callable returning one.
"""

import importlib
import json
import sys
import traceback
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .container import Container
from .errors import CircularDependencyError, DIError
from .graph import DependencyGraph


_CHECK = "\u2713"   # ✓
_CROSS = "\u2717"   # ✗
_ARROW = "\u2192"   # →


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def dim(message: str) -> None:
    click.echo(click.style(message, dim=True))


def load_container(target: str) -> Container:
    """
    Import ``module:attribute`` and return the Container it names.

    Raises:
        click.BadParameter: If the target is malformed or not a Container
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got '{target}'")

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}")

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise click.BadParameter(f"'{module_name}' has no attribute '{attr}'")

    if not isinstance(obj, Container) and callable(obj):
        obj = obj()
    if not isinstance(obj, Container):
        raise click.BadParameter(f"'{target}' is not a Container")
    return obj


def _fail(e: Exception, verbose: bool) -> None:
    error(f"{_CROSS} {e}")
    if verbose:
        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="stagedi")
def main() -> None:
    """Inspect staged dependency graphs."""


@main.command()
@click.argument("target")
@click.option("--verbose", is_flag=True, help="Show tracebacks")
def check(target: str, verbose: bool) -> None:
    """Validate the module graph."""
    container = load_container(target)
    graph = container.graph()

    try:
        stages = graph.stages()
    except CircularDependencyError as e:
        error(f"{_CROSS} Dependency cycle detected:")
        for cycle in graph.detect_cycles():
            error(f"  {f' {_ARROW} '.join(cycle + [cycle[0]])}")
        _fail(e, verbose)
    except DIError as e:
        for module, dep in graph.missing_dependencies():
            error(f"  {module} {_ARROW} {dep} (missing)")
        _fail(e, verbose)

    success(f"{_CHECK} Module graph is valid")
    dim(f"  modules: {len(graph.descriptors)}")
    dim(f"  stages:  {len(stages)}")


@main.command()
@click.argument("target")
@click.option("--verbose", is_flag=True, help="Show tracebacks")
def stages(target: str, verbose: bool) -> None:
    """Show activation stages in order."""
    container = load_container(target)
    try:
        resolved = container.stages()
    except DIError as e:
        _fail(e, verbose)

    for stage in resolved:
        info(f"Stage {stage.index}")
        for name in stage.names:
            click.echo(f"  - {name}")


@main.command()
@click.argument("target")
@click.option("--root", default=None, help="Root module to start the tree from")
@click.option("--out", default=None, help="Output file path")
def tree(target: str, root: Optional[str], out: Optional[str]) -> None:
    """Show the dependency tree."""
    graph = load_container(target).graph()
    view = graph.get_tree_view(root=root)

    click.echo(view)
    if out:
        Path(out).write_text(view)
        dim(f"Saved to {out}")


@main.command()
@click.argument("target")
@click.option("--out", default=None, help="Write DOT to this file instead of stdout")
def graph(target: str, out: Optional[str]) -> None:
    """Export the dependency graph as Graphviz DOT."""
    dot = load_container(target).graph().export_dot()

    if out:
        Path(out).write_text(dot)
        success(f"{_CHECK} Graph exported to {out}")
        dim(f"Visualize with: dot -Tpng {out} -o graph.png")
    else:
        click.echo(dot)


@main.command()
@click.argument("target")
@click.option("--out", required=True, help="Output JSON path")
@click.option("--verbose", is_flag=True, help="Show tracebacks")
def manifest(target: str, out: str, verbose: bool) -> None:
    """Export modules and stages as JSON."""
    dependency_graph: DependencyGraph = load_container(target).graph()
    try:
        data = dependency_graph.to_manifest()
    except DIError as e:
        _fail(e, verbose)

    Path(out).write_text(json.dumps(data, indent=2))
    success(f"{_CHECK} Manifest exported to {out}")
    dim(f"  {len(data['modules'])} modules, {len(data['stages'])} stages")


if __name__ == "__main__":
    main()
