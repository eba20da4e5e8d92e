from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .config import ConfigError, Settings, load_settings
from .summaries import (
    AuthenticationError,
    GeminiClient,
    GenerationFailure,
    InvalidInput,
    MailTransport,
    RenderedPrompt,
    ShareDispatcher,
    ShareFailed,
    ShareRequest,
    SimulatedMailTransport,
    SummaryService,
    WebhookMailTransport,
    build_prompt,
)
from .transcripts import STDIN_MARKER, read_text_source

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


def build_gemini_client(settings: Settings) -> GeminiClient:
    if not settings.api_key:
        raise AuthenticationError(
            "Gemini API key not found. Set GEMINI_API_KEY or add api_key to ~/.config/meeting-notes/config.yaml."
        )
    return GeminiClient(
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_attempts=settings.max_attempts,
    )


def build_mail_transport(settings: Settings) -> MailTransport:
    if settings.share_webhook_url:
        return WebhookMailTransport(settings.share_webhook_url)
    logger.info("No share webhook configured; using the simulated mail transport")
    return SimulatedMailTransport()


def resolve_settings(args: argparse.Namespace, parser: argparse.ArgumentParser) -> Settings:
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        parser.error(str(exc))
    overrides = {}
    if getattr(args, "model", None):
        overrides["model"] = args.model
    if getattr(args, "max_attempts", None) is not None:
        if args.max_attempts < 1:
            parser.error("--max-attempts must be at least 1")
        overrides["max_attempts"] = args.max_attempts
    return replace(settings, **overrides)


def read_source(source: Optional[str], parser: argparse.ArgumentParser) -> str:
    try:
        return read_text_source(source)
    except UnicodeDecodeError:
        parser.error(f"{source or 'stdin'} is not valid UTF-8 text")
        return ""
    except (FileNotFoundError, OSError) as exc:
        parser.error(str(exc))
        return ""


async def _generate(client: GeminiClient, prompt: RenderedPrompt):
    async with client:
        return await SummaryService(client=client).generate_summary(prompt)


async def _share(transport: MailTransport, summary: str, recipient: str):
    service = SummaryService(dispatcher=ShareDispatcher(transport))
    try:
        return await service.share_summary(summary, recipient)
    finally:
        if isinstance(transport, WebhookMailTransport):
            await transport.aclose()


def share_or_report(settings: Settings, summary: str, recipient: str) -> int:
    outcome = asyncio.run(_share(build_mail_transport(settings), summary, recipient))
    if isinstance(outcome, InvalidInput):
        print(f"Cannot share summary: {outcome.reason}", file=sys.stderr)
        return 1
    if isinstance(outcome, ShareFailed):
        print(f"Failed to send summary: {outcome.reason}", file=sys.stderr)
        return 1
    print(f"Summary sent to {recipient}", file=sys.stderr)
    return 0


def handle_prompt(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    transcript = read_source(args.transcript, parser)
    prompt = build_prompt(transcript, args.instructions)
    if isinstance(prompt, InvalidInput):
        parser.error(f"Cannot build prompt: {prompt.reason}")
        return 2
    sys.stdout.write(prompt.text)
    sys.stdout.write("\n")
    return 0


def handle_summarize(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    from_stdin = args.transcript in (None, STDIN_MARKER)
    if args.edit and from_stdin and not sys.stdin.isatty():
        parser.error("--edit needs an interactive terminal; pass the transcript as a file path.")

    transcript = read_source(args.transcript, parser)
    prompt = build_prompt(transcript, args.instructions)
    if isinstance(prompt, InvalidInput):
        parser.error(f"Cannot build prompt: {prompt.reason}")
        return 2

    settings = resolve_settings(args, parser)
    try:
        client = build_gemini_client(settings)
    except AuthenticationError as exc:
        parser.error(str(exc))
        return 2

    outcome = asyncio.run(_generate(client, prompt))
    if isinstance(outcome, GenerationFailure):
        print(f"Failed to generate summary: {outcome.reason}", file=sys.stderr)
        return 1

    summary = outcome.text
    if args.edit:
        try:
            from .editor import edit_summary
        except ModuleNotFoundError as exc:
            if exc.name == "prompt_toolkit":
                parser.error(
                    "Interactive editing requires optional dependency 'prompt_toolkit'. "
                    "Install it from the repo with `python -m pip install .[editor]`."
                )
            raise
        summary = edit_summary(summary)

    sys.stdout.write(summary)
    if not summary.endswith("\n"):
        sys.stdout.write("\n")

    if args.share:
        return share_or_report(settings, summary, args.share)
    return 0


def handle_share(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    summary = read_source(args.summary, parser)
    invalid = ShareRequest(summary_text=summary, recipient_address=args.recipient).validate()
    if invalid is not None:
        parser.error(f"Cannot share summary: {invalid.reason}")
        return 2
    settings = resolve_settings(args, parser)
    return share_or_report(settings, summary, args.recipient)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="meeting-notes",
        description="Summarize meeting transcripts with Gemini and share the result by email.",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="YAML settings file (default: ~/.config/meeting-notes/config.yaml)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr")

    sub = p.add_subparsers(dest="cmd", required=True)

    instructions_help = "Steering directive for the summary (default: 'Summarize the key points and action items.')"

    p_prompt = sub.add_parser("prompt", help="Print the rendered prompt without calling the API")
    p_prompt.add_argument("transcript", nargs="?", help="Transcript file (default: stdin)")
    p_prompt.add_argument("-i", "--instructions", default=None, help=instructions_help)

    p_summarize = sub.add_parser("summarize", help="Generate a structured summary of a transcript")
    p_summarize.add_argument("transcript", nargs="?", help="Transcript file (default: stdin)")
    p_summarize.add_argument("-i", "--instructions", default=None, help=instructions_help)
    p_summarize.add_argument("--model", help="Gemini model identifier (default from settings)")
    p_summarize.add_argument(
        "--max-attempts",
        type=int,
        help="Maximum number of requests before giving up (default: 5)",
    )
    p_summarize.add_argument(
        "--edit",
        action="store_true",
        help="Edit the generated summary interactively before printing or sharing it",
    )
    p_summarize.add_argument("--share", metavar="EMAIL", help="Send the final summary to this recipient")

    p_share = sub.add_parser("share", help="Send an existing summary to a recipient")
    p_share.add_argument("recipient", help="Recipient email address")
    p_share.add_argument("summary", nargs="?", help="Summary file (default: stdin)")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.cmd == "prompt":
        return handle_prompt(args, parser)
    if args.cmd == "summarize":
        return handle_summarize(args, parser)
    if args.cmd == "share":
        return handle_share(args, parser)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
