#!/usr/bin/env python3
"""Rabbit-hole explorer - interactive terminal front end."""
import asyncio
import argparse
import logging
from datetime import datetime
from pathlib import Path

from container import Container
from domain.exceptions import ExplorationError, ValidationError
from exploration.explorer import Explorer

HELP = """Commands:
  <n>          expand question number n
  a <text>     add your own follow-up question
  n <text>     start over with a new question
  d <n>        delete node n and everything below it
  r <name>     rename the session
  e [path]     export the graph to JSON
  s            list saved sessions
  q            quit"""


def print_graph(explorer: Explorer) -> list[str]:
    """Print the tree depth-first; returns node ids by display number."""
    snapshot = explorer.store.snapshot()
    order: list[str] = []

    def walk(node_id: str, depth: int) -> None:
        node = explorer.store.get_node(node_id)
        order.append(node_id)
        marker = "*" if node.is_expanded else " "
        tag = " (custom)" if node.is_custom else ""
        print(f"{len(order):>3}. {'  ' * depth}[{marker}] {node.label}{tag}")
        for child_id in explorer.store.children_of(node_id):
            walk(child_id, depth + 1)

    roots = [n.id for n in snapshot.nodes if explorer.store.parent_of(n.id) is None]
    for root_id in roots:
        walk(root_id, 0)
    return order


def print_node(explorer: Explorer, node_id: str) -> None:
    node = explorer.store.get_node(node_id)
    print("\n" + "=" * 60)
    print(node.label)
    print("=" * 60)
    print(node.content or "(no answer)")
    if node.sources:
        print("\nSources:")
        for source in node.sources:
            print(f"  - {source.title or source.url} {source.url}")
    print()


async def interactive_loop(explorer: Explorer) -> None:
    print(HELP)
    while True:
        print()
        order = print_graph(explorer)
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            return
        if not line:
            continue

        command, _, rest = line.partition(" ")
        rest = rest.strip()

        if command == "q":
            return
        if command == "?":
            print(HELP)
        elif command.isdigit():
            index = int(command) - 1
            if not 0 <= index < len(order):
                print("No such node.")
                continue
            node_id = order[index]
            node = explorer.store.get_node(node_id)
            if node.is_expanded:
                print_node(explorer, node_id)
                continue
            print(f"Expanding: {node.label}")
            outcome = await explorer.expand(node_id)
            if outcome.succeeded:
                print_node(explorer, node_id)
            elif outcome.status == "rejected":
                print(f"Not expanded: {outcome.reason}")
        elif command == "a" and rest:
            try:
                node = explorer.add_custom_follow_up(rest)
            except ExplorationError as e:
                print(f"Could not add: {e.message}")
                continue
            print(f"Added: {node.label}")
        elif command == "n" and rest:
            outcome = await explorer.start(rest)
            if outcome.succeeded:
                print_node(explorer, explorer.store.root_id)
            elif outcome.status == "rejected":
                print(f"Not started: {outcome.reason}")
        elif command == "d" and rest.isdigit():
            index = int(rest) - 1
            if not 0 <= index < len(order):
                print("No such node.")
                continue
            removed = explorer.delete_node(order[index])
            print(f"Deleted {len(removed)} node(s)")
        elif command == "r" and rest:
            await explorer.rename_session(explorer.state.id, rest)
            print(f"Renamed to: {rest}")
        elif command == "e":
            path = Path(rest or explorer.export_filename())
            path.write_text(explorer.codec.dumps(explorer.export_session()), encoding="utf-8")
            print(f"Exported to: {path}")
        elif command == "s":
            for session in await explorer.list_sessions():
                when = datetime.fromtimestamp(session.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
                print(f"  {when}  {session.query or '(untitled)'}  [{len(session.nodes)} nodes]")
        else:
            print("Unknown command. Type ? for help.")


async def main():
    parser = argparse.ArgumentParser(description="Rabbit-hole explorer")
    parser.add_argument("query", nargs="?", help="Question to start exploring")
    parser.add_argument("--mode", choices=["expansive", "focused"], default=None, help="Follow-up question mode")
    parser.add_argument("--service", choices=["http", "direct", "mock"], default=None, help="Query service backend")
    parser.add_argument("--import", dest="import_path", default=None, help="Load a previously exported JSON file")
    parser.add_argument("--export", dest="export_path", default=None, help="Write the graph to this file on exit")
    args = parser.parse_args()

    container = Container()
    if args.mode:
        container.settings.follow_up_mode = args.mode
    if args.service:
        container.settings.query_service = args.service
    logging.basicConfig(
        level=container.settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    explorer = container.get_explorer()
    explorer.on_error(lambda failure: print(f"  ERROR: {failure.message}"))
    explorer.on_graph_emptied(lambda: print("  Graph is empty. Start a new question."))

    print("\n" + "=" * 60)
    print("RABBIT-HOLE EXPLORER")
    print("=" * 60)

    try:
        if args.import_path:
            try:
                raw = Path(args.import_path).read_text(encoding="utf-8")
                explorer.import_payload(raw)
                print(f"Imported: {args.import_path}")
            except ValidationError as e:
                print(f"Import failed: {e.message}")
                for detail in e.errors:
                    print(f"  - {detail}")
                return

        if not explorer.store.has_root():
            query = args.query or input("Enter a question: ").strip()
            if not query:
                print("No query. Exiting.")
                return
            print(f"Query: {query}")
            print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            outcome = await explorer.start(query)
            if not outcome.succeeded:
                print(f"Could not start: {outcome.reason or outcome.status}")
                return
            print_node(explorer, explorer.store.root_id)

        await interactive_loop(explorer)

        if args.export_path:
            Path(args.export_path).write_text(
                explorer.codec.dumps(explorer.export_session()),
                encoding="utf-8",
            )
            print(f"\nSaved to: {args.export_path}")
    except ExplorationError as e:
        print(f"\nERROR: {e.message}")
    finally:
        await explorer.flush()
        await explorer.aclose()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
