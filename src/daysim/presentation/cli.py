import argparse
import logging
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from daysim.application.dtos import DailyRunView, TodayArcState
from daysim.application.errors import ArcActionError, DailyRunError
from daysim.bootstrap import EngineServices, create_engine_services
from daysim.domain.models.daily import DailyRunStage


_CONSOLE = Console()
_BORDER_DAY = "yellow"
_BORDER_ARCS = "magenta"
_BORDER_ALIGNMENT = "cyan"

DEFAULT_ALLOCATION = {"study": 30, "work": 20, "social": 20, "health": 20, "fun": 10}


def parse_allocation(raw: Optional[str]) -> Dict[str, int]:
    if not raw:
        return dict(DEFAULT_ALLOCATION)
    allocation: Dict[str, int] = {}
    for part in raw.split(","):
        key, _, value = part.partition("=")
        if not key.strip() or not value.strip():
            raise argparse.ArgumentTypeError(f"Bad allocation entry: {part!r}")
        allocation[key.strip()] = int(value)
    return allocation


def render_day(console: Console, view: DailyRunView, arc_state: TodayArcState, scores: Dict[str, int]) -> None:
    snapshot = view.snapshot
    stats = Table(show_header=True, header_style="bold yellow")
    stats.add_column("Storylet")
    stats.add_column("Tags")
    stats.add_column("Choices")
    for storylet in view.storylets:
        stats.add_row(storylet.title, ", ".join(storylet.tags) or "-", ", ".join(choice.id for choice in storylet.choices))
    subtitle = f"stage: {view.stage.value}"
    if snapshot is not None:
        subtitle += (
            f"  energy {snapshot.energy}  stress {snapshot.stress}  morale {snapshot.morale}"
            f"  knowledge {snapshot.knowledge}  cash {snapshot.cash_on_hand}"
        )
    console.print(
        Panel.fit(stats, title=f"Day {view.day_index} - {view.user_id}", subtitle=subtitle, border_style=_BORDER_DAY)
    )

    arcs = Table(show_header=True, header_style="bold yellow")
    arcs.add_column("Kind")
    arcs.add_column("Arc")
    arcs.add_column("Detail")
    for offer_view in arc_state.offers:
        offer = offer_view.offer
        arcs.add_row("offer", offer_view.arc.title, f"tone {offer.tone_level}, expires day {offer.expires_on_day}")
    for due in arc_state.due_steps:
        arcs.add_row("due", due.arc.title, f"{due.step.title} (expires day {due.expires_on_day})")
    console.print(
        Panel.fit(
            arcs,
            title="Arcs",
            subtitle=f"slots {arc_state.progression_slots_used}/{arc_state.progression_slots_total}",
            border_style=_BORDER_ARCS,
        )
    )

    alignment = Table(show_header=True, header_style="bold yellow")
    alignment.add_column("Faction")
    alignment.add_column("Score", justify="right")
    for faction_key, score in scores.items():
        alignment.add_row(faction_key, str(score))
    console.print(Panel.fit(alignment, title="Alignment", border_style=_BORDER_ALIGNMENT))


def autoplay_day(services: EngineServices, user_id: str, day_index: int, allocation: Dict[str, int]) -> List[str]:
    """Walk one day through the loop, always taking the first available option."""
    notes: List[str] = []
    daily = services.daily_runs
    view = daily.get_daily_run(user_id, day_index)
    if view.stage == DailyRunStage.SETUP:
        daily.complete_setup(user_id)
        view = daily.get_daily_run(user_id, day_index)

    try:
        daily.save_allocation(user_id, day_index, allocation)
        for storylet in view.storylets:
            if not storylet.choices:
                continue
            resolution = daily.play_choice(user_id, day_index, storylet.id, storylet.choices[0].id)
            notes.append(f"{storylet.title}: {resolution.text or resolution.choice_id}")
    except DailyRunError as exc:
        notes.append(f"skipped: {exc}")

    arc_state = services.arcs.get_today_arc_state(user_id, day_index)
    for due in arc_state.due_steps:
        if not due.step.options:
            continue
        result = services.arcs.resolve_step(user_id, day_index, due.instance.id, due.step.options[0].option_key)
        notes.append(f"{due.arc.title}: {result.message or 'resolved ' + due.step.title}")
    if arc_state.offers:
        offer_view = arc_state.offers[0]
        try:
            services.arcs.accept_offer(user_id, day_index, offer_view.offer.id)
            notes.append(f"accepted {offer_view.arc.title}")
        except ArcActionError as exc:
            notes.append(f"offer skipped: {exc}")

    refreshed = daily.get_daily_run(user_id, day_index)
    if refreshed.stage != DailyRunStage.COMPLETE:
        daily.mark_reflection_done(user_id, day_index)
    daily.complete_day(user_id, day_index)
    return notes


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="daysim", description="Inspect the daily simulation for one player")
    parser.add_argument("--user", default="player-1", help="Player id")
    parser.add_argument("--day", type=int, default=1, help="Day index to show")
    parser.add_argument("--seed", default=None, help="Override the storylet selection seed")
    parser.add_argument("--season", type=int, default=None, help="Season index for content gating")
    parser.add_argument(
        "--simulate",
        type=int,
        default=0,
        help="Autoplay this many days before --day, taking the first option everywhere",
    )
    parser.add_argument(
        "--allocation",
        type=parse_allocation,
        default=dict(DEFAULT_ALLOCATION),
        help="Time split used while autoplaying, e.g. study=40,work=20,social=10,health=20,fun=10",
    )
    return parser


def run(argv: Optional[Sequence[str]] = None, *, console: Optional[Console] = None) -> int:
    args = build_parser().parse_args(argv)
    console = console or _CONSOLE
    services = create_engine_services()

    first_day = max(1, args.day - max(0, args.simulate))
    for day_index in range(first_day, args.day):
        for note in autoplay_day(services, args.user, day_index, args.allocation):
            console.print(f"[dim]day {day_index}[/dim] {note}")

    view = services.daily_runs.get_daily_run(args.user, args.day, season_index=args.season, seed=args.seed)
    arc_state = services.arcs.get_today_arc_state(args.user, args.day)
    render_day(console, view, arc_state, services.alignment.scores(args.user))
    return 0


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format="%(levelname)s %(name)s: %(message)s")
