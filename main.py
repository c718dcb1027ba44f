"""Secret Tech civilization manager CLI."""

import argparse
import asyncio
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from secret_tech.auth import Authorizer
from secret_tech.config import Settings
from secret_tech.errors import SecretTechError
from secret_tech.lifecycle import Attribute, CivilizationLifecycle
from secret_tech.models import Civilization, Directory, TechStatus
from secret_tech.session import Session
from secret_tech.signers import HmacSigner
from secret_tech.solvers.research_planner import ResearchPlan, ResearchPlanner
from secret_tech.store import JsonFileStore, StoreClient
from secret_tech.store.http import HttpStore
from secret_tech.tech_tree import TechTree
from secret_tech.utils.tech_loader import load_tech_tree

console = Console()

DEFAULT_STORE_PATH = Path("secret_tech_store.json")

STATUS_STYLES = {
    TechStatus.RESEARCHED: "[green]✓ researched[/green]",
    TechStatus.AVAILABLE: "[cyan]available[/cyan]",
    TechStatus.LOCKED: "[dim]locked[/dim]",
}


def format_timestamp(seconds: int) -> str:
    """Format unix seconds as local YYYY-MM-DD HH:MM:SS."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(seconds))


def create_directory_table(directory: Directory) -> Table:
    """Create a rich table listing every synchronized civilization."""
    table = Table(title="Civilizations", show_header=True, header_style="bold magenta")

    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Id", style="dim", width=8)
    table.add_column("Name", style="cyan", width=20)
    table.add_column("Owner", style="white", width=14)
    table.add_column("Research Points", style="yellow", width=16)
    table.add_column("Technologies", style="green", width=12, justify="right")
    table.add_column("Last Updated", style="blue", width=20)

    for i, civ in enumerate(directory.civilizations, 1):
        owner = "[bold]you[/bold]" if directory.is_player(civ) else civ.owner[:12]
        table.add_row(
            str(i),
            f"#{civ.id[:6]}",
            civ.name,
            owner,
            "FHE-ENCRYPTED",
            str(len(civ.discovered_technologies)),
            format_timestamp(civ.last_updated),
        )

    return table


def create_tech_tree_table(tree: TechTree, discovered: list[str]) -> Table:
    """Create a rich table of the tech tree from one civilization's view."""
    table = Table(title="Technology Tree", show_header=True, header_style="bold magenta")

    table.add_column("Technology", style="cyan", width=18)
    table.add_column("Requires", style="white", width=18)
    table.add_column("Cost", style="yellow", width=6, justify="right")
    table.add_column("Status", width=14)
    table.add_column("Description", style="dim", width=42)

    for tech in tree.topological_order():
        requires = ", ".join(tree.get(r).name for r in tech.requires) or "-"
        table.add_row(
            tech.name,
            requires,
            str(tech.cost),
            STATUS_STYLES[tree.status(tech, discovered)],
            tech.description,
        )

    return table


def create_plan_table(tree: TechTree, plan: ResearchPlan) -> Table:
    """Create a rich table for a research plan."""
    table = Table(title="Research Plan", show_header=True, header_style="bold magenta")

    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Technology", style="cyan", width=18)
    table.add_column("Points Before", style="yellow", width=14, justify="right")
    table.add_column("Points After", style="yellow", width=14, justify="right")

    for i, step in enumerate(plan.steps, 1):
        table.add_row(
            str(i),
            tree.get(step.tech_id).name,
            str(step.points_before),
            str(step.points_after),
        )

    return table


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Secret Tech civilization manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --identity 0xabc --secret s3cret create --name Roma --points 250
  %(prog)s --identity 0xabc list
  %(prog)s --identity 0xabc --secret s3cret research metallurgy
  %(prog)s --identity 0xabc --secret s3cret reveal --attribute military_power
  %(prog)s --identity 0xabc --secret s3cret plan engineering iron_working
        """,
    )

    parser.add_argument("--config", type=Path, help="Path to settings JSON file")
    parser.add_argument(
        "--store",
        type=Path,
        default=DEFAULT_STORE_PATH,
        help=f"JSON file store (default: {DEFAULT_STORE_PATH})",
    )
    parser.add_argument("--store-url", type=str, help="Use a remote HTTP store instead")
    parser.add_argument("--tech-tree", type=Path, help="Custom tech tree JSON file")
    parser.add_argument("--identity", type=str, help="Identity address to act as")
    parser.add_argument("--secret", type=str, help="Signing secret for the identity")
    parser.add_argument(
        "--yes", "-y", action="store_true", help="Sign challenges without asking"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Minimal output (plain values)"
    )
    parser.add_argument("--log-level", type=str, help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="Sync and list all civilizations")

    tree_parser = subparsers.add_parser("tree", help="Show the technology tree")
    tree_parser.add_argument("--civ", type=str, help="Civilization id (default: yours)")

    create_parser = subparsers.add_parser("create", help="Create a civilization")
    create_parser.add_argument("--name", type=str, required=True)
    create_parser.add_argument("--points", type=int, default=0)
    create_parser.add_argument("--power", type=int, default=0)

    research_parser = subparsers.add_parser("research", help="Research a technology")
    research_parser.add_argument("tech", type=str)
    research_parser.add_argument("--civ", type=str, help="Civilization id (default: yours)")

    reveal_parser = subparsers.add_parser("reveal", help="Decrypt an attribute")
    reveal_parser.add_argument(
        "--attribute",
        type=str,
        default=Attribute.RESEARCH_POINTS.value,
        choices=[a.value for a in Attribute],
    )
    reveal_parser.add_argument("--civ", type=str, help="Civilization id (default: yours)")

    plan_parser = subparsers.add_parser("plan", help="Plan research toward targets")
    plan_parser.add_argument("targets", nargs="+")
    plan_parser.add_argument("--civ", type=str, help="Civilization id (default: yours)")

    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_store(args: argparse.Namespace, settings: Settings) -> StoreClient:
    if args.store_url:
        return HttpStore(args.store_url, timeout=settings.store_timeout)
    return JsonFileStore(args.store)


def build_session(args: argparse.Namespace, settings: Settings) -> Session:
    """Connect the identity given on the command line, if any."""
    if not args.identity:
        return Session(settings=settings)

    def approve(message: str) -> bool:
        if args.yes:
            return True
        console.print(Panel(message[:200] + "…", title="Signature request"))
        return Confirm.ask("Sign this challenge?", console=console)

    secret = (args.secret or args.identity).encode("utf-8")
    signer = HmacSigner(args.identity, secret, approve=approve)
    return Session.connect(signer, settings)


def select_civilization(directory: Directory, civ_id: str | None) -> Civilization:
    if civ_id:
        civ = directory.find(civ_id)
        if civ is None:
            raise SecretTechError(f"Civilization not found: {civ_id}")
        return civ
    civ = directory.player_civilization()
    if civ is None:
        raise SecretTechError("No player civilization found")
    return civ


async def run(args: argparse.Namespace, settings: Settings) -> int:
    tree = load_tech_tree(args.tech_tree)
    store = build_store(args, settings)
    session = build_session(args, settings)
    lifecycle = CivilizationLifecycle(
        store, settings, authorizer=Authorizer(settings), tree=tree
    )

    session.directory = await lifecycle.synchronizer.load(session.address)
    directory = session.directory

    if not directory.report.store_available and not args.quiet:
        console.print("[yellow]Store unavailable, nothing to show[/yellow]")
    for failure in directory.report.failures:
        console.print(f"[yellow]Skipped {failure.key}: {failure.reason}[/yellow]")

    if args.command == "list":
        if args.quiet:
            for civ in directory.civilizations:
                print(f"{civ.id}\t{civ.name}\t{len(civ.discovered_technologies)}")
        else:
            console.print(create_directory_table(directory))

    elif args.command == "tree":
        discovered: list[str] = []
        if args.civ or directory.player_civilization():
            discovered = select_civilization(directory, args.civ).discovered_technologies
        console.print(create_tech_tree_table(tree, discovered))
        researched, total, percentage = tree.progress(discovered)
        console.print(
            f"\n[bold]Progress:[/bold] [cyan]{researched} / {total}[/cyan] "
            f"technologies ([green]{percentage}%[/green])"
        )

    elif args.command == "create":
        civ_id = await lifecycle.create(
            args.name, args.points, args.power, session.address
        )
        if args.quiet:
            print(civ_id)
        else:
            console.print(f"[green]✓ Civilization created: {civ_id}[/green]")

    elif args.command == "research":
        civ = select_civilization(directory, args.civ)
        updated = await lifecycle.research_tech(args.tech, civ, session)
        if not args.quiet:
            console.print(
                f"[green]✓ {tree.get(args.tech).name} researched by {updated.name}[/green]"
            )

    elif args.command == "reveal":
        civ = select_civilization(directory, args.civ)
        value = await lifecycle.reveal(civ, Attribute(args.attribute), session)
        if args.quiet:
            print(value)
        else:
            label = args.attribute.replace("_", " ").title()
            console.print(f"[bold]{label}:[/bold] [cyan]{value}[/cyan]")

    elif args.command == "plan":
        civ = select_civilization(directory, args.civ)
        points = await lifecycle.reveal(civ, Attribute.RESEARCH_POINTS, session)
        plan = ResearchPlanner(
            tree,
            civ.discovered_technologies,
            points,
            args.targets,
            time_limit=settings.planner_time_limit,
        ).solve()
        if args.quiet:
            for step in plan.steps:
                print(step.tech_id)
        else:
            console.print(create_plan_table(tree, plan))
            console.print(
                f"\n[bold]Total cost:[/bold] [cyan]{plan.total_cost}[/cyan] points"
            )
            if plan.unreached_targets:
                console.print(
                    "[yellow]Not reachable with current points: "
                    f"{', '.join(plan.unreached_targets)}[/yellow]"
                )

    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    args = parse_args(argv)
    settings = Settings.load(args.config)
    configure_logging(args.log_level or settings.log_level)

    try:
        return asyncio.run(run(args, settings))
    except SecretTechError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
