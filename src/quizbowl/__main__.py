"""CLI entry point: python -m quizbowl <command> [options]"""

import argparse
import getpass
import logging
import sys
import threading
from pathlib import Path
from typing import TextIO

from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live

from quizbowl.bracket import default_pairing
from quizbowl.config import load_config
from quizbowl.display import (
    build_bracket_summary,
    build_footer,
    build_scoreboard,
    build_standings,
    render,
)
from quizbowl.session import Cue, Session

REFRESH_RATE = 0.5

logger = logging.getLogger(__name__)

console = Console()


def _cue_bell(cue: Cue) -> None:
    # Terminal bell stands in for the audio cues
    console.bell()


KEYS = {
    "a": ("Tossup A", lambda s: s.award_tossup("A")),
    "b": ("Tossup B", lambda s: s.award_tossup("B")),
    "x": ("Bonus", lambda s: s.award_bonus()),
    "n": ("Next tossup", lambda s: s.next_tossup()),
    "t": ("Start tossup timer", lambda s: s.start_timer("tossup")),
    "y": ("Start bonus timer", lambda s: s.start_timer("bonus")),
    "p": ("Pause timer", lambda s: s.pause_timer()),
    "r": ("Reset timer", lambda s: s.reset_timer()),
    "reset": ("Reset game", lambda s: s.reset_game()),
}
QUIT_KEYS = ("q", "quit")


def handle_key(session: Session, key: str) -> bool:
    """Run the control bound to ``key``. Returns False when the user quits."""
    key = key.strip()
    if key in QUIT_KEYS:
        return False
    binding = KEYS.get(key) or KEYS.get(key.lower())
    if binding is None:
        if key:
            session.message = f"Unknown key {key!r}"
        return True
    binding[1](session)
    return True


def key_help() -> str:
    bound = "  ".join(f"{key}={label}" for key, (label, _) in KEYS.items())
    return f"{bound}  q=Quit  (type a key, then Enter)"


def _read_keys(session: Session, stream: TextIO, done: threading.Event) -> None:
    try:
        for line in stream:
            if done.is_set() or not handle_key(session, line):
                break
    except Exception:
        logger.exception("Key reader failed")
    finally:
        done.set()


def _watch(session: Session, args, stream: TextIO | None = None) -> int:
    session.player_team_id = args.team
    page = "bracket" if args.bracket else "control"
    controls = key_help() if page == "control" else "q=Quit  (type q, then Enter)"
    done = threading.Event()
    session.start()
    reader = threading.Thread(
        target=_read_keys,
        args=(session, stream or sys.stdin, done),
        daemon=True,
        name="quizbowl-keys",
    )
    reader.start()
    try:
        with Live(render(session, page, controls), console=console, refresh_per_second=4) as live:
            while not done.wait(REFRESH_RATE):
                live.update(render(session, page, controls))
    except KeyboardInterrupt:
        pass
    finally:
        done.set()
        session.close()
    return 0


def _login(session: Session, args) -> int:
    password = args.password or getpass.getpass("Password: ")
    action = session.register if args.command == "register" else session.login
    if not action(args.username, password):
        console.print(f"[bold red]{session.message}[/bold red]")
        return 1
    creds = session.credentials
    console.print(f"Signed in as [bold]{creds.username}[/bold] ({creds.role or 'viewer'})")
    return 0


def _logout(session: Session, args) -> int:
    session.logout()
    console.print("Signed out.")
    return 0


def _whoami(session: Session, args) -> int:
    creds = session.credentials
    if not creds.signed_in:
        console.print("Not signed in.")
        return 1
    console.print(f"{creds.username} ({creds.role or 'viewer'})")
    return 0


def _profile(session: Session, args) -> int:
    ok = session.update_profile(args.new_username, args.new_password)
    console.print(session.message)
    return 0 if ok else 1


def _bracket(session: Session, args) -> int:
    if not session.sync.refresh_bracket():
        console.print("[bold red]Could not load bracket.[/bold red]")
        return 1
    session.sync.drain()
    bracket = session.store.bracket
    console.print(build_bracket_summary(bracket))
    console.print(build_standings(bracket))
    return 0


def _action(session: Session, args) -> int:
    """One-shot scoring and bracket commands."""
    session.sync.refresh_game()
    session.sync.drain()
    command = args.command
    if command == "award":
        ok = session.award_tossup(args.team)
    elif command == "bonus":
        ok = session.award_bonus()
    elif command == "next":
        ok = session.next_tossup()
    elif command == "reset":
        ok = session.reset_game()
    elif command == "names":
        ok = session.save_team_names(args.team_a, args.team_b)
    elif command == "init-bracket":
        ok = session.init_bracket(Path(args.names_file).read_text())
    elif command == "push":
        session.sync.refresh_bracket()
        session.sync.drain()
        default_a, default_b = default_pairing(session.store.bracket)
        ok = session.push_pairing(args.team_a_id or default_a, args.team_b_id or default_b)
    elif command == "finalize":
        ok = session.finalize_current()
    else:
        raise ValueError(f"Unhandled command {command!r}")
    session.sync.drain()

    if not session.is_admin:
        console.print("[dim]Viewer session: change applied locally only.[/dim]")
    console.print(build_scoreboard(session.store.game))
    console.print(build_footer(session.is_admin, session.message, stream_open=True))
    return 0 if ok else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizbowl",
        description="Live control and spectating for quiz bowl matches",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to client YAML config (default: built-in defaults)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Live scoreboard with keyboard controls, or the bracket view")
    watch.add_argument("--bracket", action="store_true", help="Show the bracket page")
    watch.add_argument("--team", default=None, help="Team id to track on the bracket page")
    watch.set_defaults(handler=_watch)

    for name in ("login", "register"):
        p = sub.add_parser(name, help=f"{name.title()} and remember the session token")
        p.add_argument("username")
        p.add_argument("--password", default=None, help="Prompted for when omitted")
        p.set_defaults(handler=_login)

    sub.add_parser("logout", help="Forget the stored session").set_defaults(handler=_logout)
    sub.add_parser("whoami", help="Show the stored user").set_defaults(handler=_whoami)

    profile = sub.add_parser("profile", help="Change username and/or password")
    profile.add_argument("--new-username", default=None)
    profile.add_argument("--new-password", default=None)
    profile.set_defaults(handler=_profile)

    sub.add_parser("bracket", help="Print bracket summary and standings").set_defaults(
        handler=_bracket,
    )

    award = sub.add_parser("award", help="Award a tossup")
    award.add_argument("team", choices=["A", "B"])
    award.set_defaults(handler=_action)
    sub.add_parser("bonus", help="Award a bonus to the last tossup winner").set_defaults(
        handler=_action,
    )
    sub.add_parser("next", help="Advance to the next tossup").set_defaults(handler=_action)
    sub.add_parser("reset", help="Reset the game").set_defaults(handler=_action)

    names = sub.add_parser("names", help="Set team names")
    names.add_argument("team_a")
    names.add_argument("team_b")
    names.set_defaults(handler=_action)

    init = sub.add_parser("init-bracket", help="Create a bracket, one team name per line")
    init.add_argument("names_file", type=Path)
    init.set_defaults(handler=_action)

    push = sub.add_parser(
        "push", help="Push a pairing to the game (default: first two teams still alive)",
    )
    push.add_argument("team_a_id", nargs="?", default=None)
    push.add_argument("team_b_id", nargs="?", default=None)
    push.set_defaults(handler=_action)

    sub.add_parser("finalize", help="Finalize the current match").set_defaults(handler=_action)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config is not None and not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        return 1
    config = load_config(args.config)

    session = Session(config, on_cue=_cue_bell)
    if args.handler is _watch:
        return _watch(session, args)
    try:
        return args.handler(session, args)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
