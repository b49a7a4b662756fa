"""
main.py
-------
Command-line interface for running worker-chain pipelines.

  python main.py --list                          List pipelines in the config
  python main.py MathSolver "2 and 2 added"      Run a pipeline once
  python main.py MathSolver "..." --stream       Stream the final worker's reply
  python main.py MathSolver                      Start an interactive session
  python main.py ... --debug                     Enable DEBUG logging

Slash Commands (interactive session)
────────────────────────────────────
  /stream on|off              Toggle streaming of the final worker
  /history                    Print the inputs and answers of this session
  /clear                      Clear the session history
  /help                       Show this help text
  /quit  (or /exit, Ctrl-C)   Exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import textwrap

from dotenv import load_dotenv

# Load .env before importing any project modules so env vars are available.
load_dotenv(override=True)

from workerchain import Agent, Pipeline, WorkerChainError, chat_model, load_pipelines_file
from workerchain.adapters.foundry import close_client
from workerchain.providers import build_client, current_provider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def _configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # Reduce noise from Azure SDK unless in debug mode.
    if not debug:
        for noisy in ("azure", "urllib3", "httpcore", "httpx", "openai"):
            logging.getLogger(noisy).setLevel(logging.ERROR)


# ---------------------------------------------------------------------------
# ANSI helpers (graceful fallback when stdout is not a terminal)
# ---------------------------------------------------------------------------

_USE_COLOUR = sys.stdout.isatty()


def _c(code: str, text: str) -> str:
    return f"\033[{code}m{text}\033[0m" if _USE_COLOUR else text


def _dim(t: str)   -> str: return _c("2", t)
def _cyan(t: str)  -> str: return _c("36", t)
def _green(t: str) -> str: return _c("32", t)
def _yellow(t: str)-> str: return _c("33", t)
def _red(t: str)   -> str: return _c("31", t)
def _bold(t: str)  -> str: return _c("1", t)


HELP_TEXT = textwrap.dedent("""\
    ┌─────────────────────────────────────────────────────┐
    │              Worker Chain  —  Commands              │
    ├─────────────────────────────────────────────────────┤
    │  /stream on|off          Toggle final-worker stream │
    │  /history                Show session history       │
    │  /clear                  Clear session history      │
    │  /help                   Show this help             │
    │  /quit  or  /exit        Exit                       │
    │                                                     │
    │  Tip: anything else is sent through the pipeline.   │
    └─────────────────────────────────────────────────────┘
""")


def _print_error(text: str) -> None:
    print(_red(f"  ✖ {text}"))
    print()


# ---------------------------------------------------------------------------
# Running a chain
# ---------------------------------------------------------------------------

async def run_once(
    chain: Agent, text: str, *, stream: bool, max_tokens: int | None
) -> str:
    """Run ``chain`` on ``text``, echoing fragments as they arrive when streaming."""
    if not stream:
        answer = await chain.run(text, max_tokens=max_tokens)
        print(answer)
        return answer

    fragments: list[str] = []
    async with await chain.run_stream(text, max_tokens=max_tokens) as stream:
        async for fragment in stream:
            fragments.append(fragment)
            print(fragment, end="", flush=True)
    print()
    return "".join(fragments)


# ---------------------------------------------------------------------------
# CLI session
# ---------------------------------------------------------------------------

class CLISession:
    """Maintains per-session state and handles the REPL loop."""

    def __init__(self, chain: Agent, stream: bool, max_tokens: int | None) -> None:
        self.chain = chain
        self.stream = stream
        self.max_tokens = max_tokens
        self.history: list[dict] = []   # [{"input": str, "answer": str}]

    @staticmethod
    def _prompt() -> str:
        try:
            return input(_bold(_cyan("You")) + " › ").strip()
        except EOFError:
            return "/quit"

    def _handle_slash(self, raw: str) -> bool:
        """
        Process a slash command.  Returns True if the REPL should continue,
        False if the user wants to quit.
        """
        parts = raw.split(maxsplit=1)
        cmd   = parts[0].lower()
        args  = parts[1].strip() if len(parts) > 1 else ""

        if cmd in ("/quit", "/exit"):
            print(_yellow("Goodbye!"))
            return False

        elif cmd == "/help":
            print(HELP_TEXT)

        elif cmd == "/stream":
            if args.lower() in ("on", "1", "true", "yes"):
                self.stream = True
                print(_green("  ✔ Streaming ON"))
            elif args.lower() in ("off", "0", "false", "no"):
                self.stream = False
                print(_yellow("  ✔ Streaming OFF"))
            else:
                state = "ON" if self.stream else "OFF"
                print(f"  Streaming is currently {_bold(state)}. Use '/stream on' or 'off'.")

        elif cmd == "/history":
            if not self.history:
                print(_dim("  (no history yet)"))
            else:
                print()
                for i, entry in enumerate(self.history, 1):
                    print(f"  {i:>2}. {_bold(_cyan('You'))}: {entry['input'][:120]}")
                    print(f"      {_bold(_green('Answer'))}: {entry['answer'][:120]}")
                print()

        elif cmd == "/clear":
            self.history.clear()
            print(_yellow("  History cleared."))

        else:
            print(_yellow(f"  Unknown command '{cmd}'. Type /help for available commands."))

        return True

    async def run(self) -> None:
        print(_bold(f"\n  Worker Chain: {self.chain.name}"))
        print(_dim("  Type an input, use /help for commands, Ctrl-C or /quit to exit.\n"))

        while True:
            try:
                raw = self._prompt()
                if not raw:
                    continue
                if raw.startswith("/"):
                    if not self._handle_slash(raw):
                        break
                    continue

                print()
                answer = await run_once(
                    self.chain, raw, stream=self.stream, max_tokens=self.max_tokens
                )
                print()
                self.history.append({"input": raw, "answer": answer})

            except KeyboardInterrupt:
                print(_yellow("\n  (Interrupted — type /quit to exit)"))
            except WorkerChainError as exc:
                _print_error(str(exc))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unhandled error in REPL")
                _print_error(f"Unexpected error: {exc}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a worker-chain pipeline.")
    parser.add_argument("pipeline", nargs="?", help="Pipeline name from the config file")
    parser.add_argument("input", nargs="?", help="Input text; omit for an interactive session")
    parser.add_argument("--stream", action="store_true", help="Stream the final worker's reply")
    parser.add_argument("--max-tokens", type=int, default=None, help="Per-worker output limit")
    parser.add_argument("--config", default=None, help="Pipelines YAML (default: $WORKERCHAIN_CONFIG)")
    parser.add_argument("--list", action="store_true", help="List pipelines and exit")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args(argv)


def _print_pipelines(pipelines: dict[str, Pipeline]) -> None:
    if not pipelines:
        print(_dim("  (no pipelines configured)"))
    for name, pipeline in pipelines.items():
        print(f"  • {_bold(name)} - {pipeline.description}  [Steps: {pipeline.step_summary}]")


async def _async_main(args: argparse.Namespace) -> int:
    pipelines = load_pipelines_file(args.config)

    if args.list or not args.pipeline:
        _print_pipelines(pipelines)
        return 0

    pipeline = pipelines.get(args.pipeline)
    if pipeline is None:
        available = ", ".join(pipelines) or "none"
        _print_error(f"Pipeline '{args.pipeline}' not found. Available pipelines: {available}")
        return 1

    print(_dim(f"  Provider : {current_provider()}  Steps : {pipeline.step_summary}"))
    try:
        async with build_client() as client:
            chain = pipeline.build(chat_model(client, name=pipeline.name))
            if args.input is None:
                await CLISession(chain, args.stream, args.max_tokens).run()
            else:
                await run_once(chain, args.input, stream=args.stream, max_tokens=args.max_tokens)
    finally:
        # Clean up the shared Foundry client.
        await close_client()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.debug)
    try:
        return asyncio.run(_async_main(args))
    except WorkerChainError as exc:
        _print_error(str(exc))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
