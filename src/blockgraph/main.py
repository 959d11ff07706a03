import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from blockgraph.config import get_settings
from blockgraph.core.models import GraphNode, NodeType, TreeNode
from blockgraph.core.service import BlockGraphSession, NodeNotFoundError
from blockgraph.core.source import DefinitionSource, DefinitionSourceError

logger = logging.getLogger(__name__)

APP_HELP = """
blockgraph: Build the block graph of a codebase from its block definitions.

Every `.block-definition.yml` places one block under a scope path
(e.g. /Core/Accounting) and may split it into parts. blockgraph merges the
definitions into one node per path, assembles them into a tree and resolves
the `based` / `extend` references between blocks.

COMMANDS:
- build:   Node/link statistics, or the `{nodes, links}` JSON for a renderer.
- tree:    The assembled hierarchy.
- related: What a node is based on, extends, or shares a name with, and
           which nodes stay highlighted when it is selected.
"""

app = typer.Typer(name="blockgraph", help=APP_HELP, no_args_is_help=True)
console = Console()

NODE_STYLES = {
    NodeType.SCOPE: "blue",
    NodeType.BLOCK: "green",
    NodeType.PART: "bright_green",
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """
    Block Graph: block definitions to graph, tree and relationships.
    """
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _open_session(directory: Path, hide_parts: Optional[bool]) -> BlockGraphSession:
    settings = get_settings()
    try:
        project = DefinitionSource(settings).load_project(directory)
    except DefinitionSourceError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(code=1)
    hidden = settings.hide_parts if hide_parts is None else hide_parts
    return BlockGraphSession(project, hide_parts=hidden)


def _node_label(node: GraphNode) -> str:
    style = NODE_STYLES.get(node.type, "white")
    label = f"[{style}]{escape(node.name)}[/{style}]"
    if node.blocks:
        label += f" [dim]({len(node.blocks)})[/dim]"
    return label


def _add_branch(parent: Tree, tree_node: TreeNode) -> None:
    stack = [(parent, tree_node)]
    while stack:
        rich_parent, current = stack.pop()
        branch = rich_parent.add(_node_label(current.node))
        for child in reversed(current.children):
            stack.append((branch, child))


@app.command()
def build(
    directory: Path = typer.Argument(..., help="Project root to scan for block definitions"),
    hide_parts: Optional[bool] = typer.Option(None, "--hide-parts/--show-parts", help="Omit block parts from the graph."),
    json_output: bool = typer.Option(False, "--json", help="Output {nodes, links} as JSON"),
):
    """
    Build the node/link graph and report its size.
    """
    session = _open_session(directory, hide_parts)

    if json_output:
        print(json.dumps(session.graph.model_dump(by_alias=True, mode="json"), ensure_ascii=False))
        return

    stats = session.stats()
    table = Table(title="Block Graph")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta", justify="right")
    for key in ("records", "nodes", "links", "scope", "block", "part", "tree_nodes"):
        table.add_row(key, str(stats[key]))
    console.print(table)


@app.command()
def tree(
    directory: Path = typer.Argument(..., help="Project root to scan for block definitions"),
    hide_parts: Optional[bool] = typer.Option(None, "--hide-parts/--show-parts", help="Omit block parts from the tree."),
    json_output: bool = typer.Option(False, "--json", help="Output the nested tree as JSON"),
):
    """
    Show the assembled hierarchy.
    """
    session = _open_session(directory, hide_parts)

    if json_output:
        payload = session.tree.to_dict() if session.tree is not None else None
        print(json.dumps(payload, ensure_ascii=False))
        return

    if session.tree is None:
        console.print("[yellow]No block definitions found.[/yellow]")
        return

    root = Tree(_node_label(session.tree.node))
    for child in session.tree.children:
        _add_branch(root, child)
    console.print(root)


@app.command()
def related(
    directory: Path = typer.Argument(..., help="Project root to scan for block definitions"),
    node_ref: str = typer.Argument(..., help="Node id or path (e.g. 'Core/Accounting/Ledger')"),
    hide_parts: Optional[bool] = typer.Option(None, "--hide-parts/--show-parts", help="Omit block parts from the graph."),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Resolve based/extend references and the highlight set for one node.
    """
    session = _open_session(directory, hide_parts)
    try:
        node = session.find_node(node_ref)
    except NodeNotFoundError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(code=1)

    selection = session.select(node)

    if json_output:
        print(json.dumps(selection.model_dump(by_alias=True, mode="json"), ensure_ascii=False))
        return

    console.print(f"[bold]{escape(node.path)}[/bold] [dim]({node.type.value}, id {node.id})[/dim]")
    table = Table(title="Related Nodes")
    table.add_column("Relation", style="cyan")
    table.add_column("Path")
    for relation, nodes in (
        ("based", selection.related.based),
        ("extend", selection.related.extend),
        ("other", selection.related.other),
    ):
        for related_node in nodes:
            table.add_row(relation, escape(related_node.path))
    if table.row_count:
        console.print(table)
    else:
        console.print("[dim]No related nodes.[/dim]")

    visible = selection.highlight.visible_ids()
    console.print(f"Highlighted: {len(visible)} of {len(selection.highlight.nodes)} nodes")
    for node_id in visible:
        visible_node = session.graph.get_node(node_id)
        if visible_node is not None:
            console.print(f"  {_node_label(visible_node)} [dim]{escape(visible_node.path)}[/dim]")


if __name__ == "__main__":
    app()
