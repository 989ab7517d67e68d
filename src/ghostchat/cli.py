"""CLI entry point for ghostchat.

Usage:
    ghostchat chat [--config widget.yaml]        # Chat in the terminal
    ghostchat extract URL [--mode faq]           # Print the context corpus for a page
    ghostchat license KEY [--endpoint URL]       # Show the tier a key resolves to
    ghostchat --version                          # Show version

Configuration is read from the YAML file (if given) and then overlaid
with GHOSTCHAT_* environment variables, e.g. GHOSTCHAT_API_KEY.
"""

import argparse
import asyncio
import logging
import sys

from ghostchat import __version__


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="ghostchat",
        description="GhostChat - license-tiered AI chat with page context",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show log output",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Interactive chat
    chat_parser = subparsers.add_parser(
        "chat",
        help="Chat with the configured provider in the terminal",
    )
    chat_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML widget config",
    )

    # Context extraction
    extract_parser = subparsers.add_parser(
        "extract",
        help="Print the context corpus built from a page",
    )
    extract_parser.add_argument("url", help="Page to fetch")
    extract_parser.add_argument(
        "--mode",
        choices=["faq", "summarize", "full_scrape"],
        default="summarize",
        help="Context mode (default: summarize)",
    )
    extract_parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )

    # License check
    license_parser = subparsers.add_parser(
        "license",
        help="Validate a license key and show its tier",
    )
    license_parser.add_argument("key", help="License key")
    license_parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="License validation endpoint",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="[GhostChat] %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "chat":
        return asyncio.run(run_chat(args.config))
    if args.command == "extract":
        return asyncio.run(run_extract(args.url, args.mode, args.timeout))
    if args.command == "license":
        return asyncio.run(run_license(args.key, args.endpoint))

    parser.print_help()
    return 1


def load_widget_config(config_path=None):
    """Config file (if any) overlaid with GHOSTCHAT_* variables."""
    from pathlib import Path

    from ghostchat.config import WidgetConfig, config_from_env, load_config

    base = load_config(Path(config_path)) if config_path else WidgetConfig()
    return config_from_env(defaults=base)


async def run_chat(config_path=None):
    """Interactive chat loop; an empty line or EOF ends the session."""
    from ghostchat.errors import ConfigError
    from ghostchat.session import ChatSession

    try:
        config = load_widget_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    session = await ChatSession(config).start()

    print(f"GhostChat - {session.tier.value.upper()} tier, provider {session.config.provider}")
    if session.offline:
        print("(offline mode: no API key configured)")
    if session.corpus:
        print(f"(context loaded: {len(session.corpus)} characters)")
    print(session.config.welcome_message)

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        if not line.strip():
            break
        reply = await session.send(line)
        print(reply)

    print_metrics_summary(session.metrics)
    return 0


def print_metrics_summary(metrics):
    """Print per-provider latency and failure figures for the session."""
    summary = metrics.export()
    if not summary["total_replies"] and not summary["total_failures"]:
        return

    print(
        f"Session: {summary['total_replies']} replies, "
        f"{summary['total_failures']} failures"
    )
    for provider, stats in sorted(summary["providers"].items()):
        latency = stats["latency"]
        failures = ", ".join(
            f"{kind} {count}" for kind, count in stats["failures"].items() if count
        )
        print(
            f"  {provider}: p50 {latency['p50']}ms, p95 {latency['p95']}ms, "
            f"error rate {stats['error_rate']:.0%}"
            + (f" ({failures})" if failures else "")
        )
    if summary["is_degraded"]:
        print("  provider degraded: slow replies or high error rate")


async def run_extract(url, mode, timeout=30.0):
    """Fetch a page and print its corpus."""
    from ghostchat.context_pipeline import ContextPipeline, ContextState
    from ghostchat.tiers import ContextMode

    pipeline = ContextPipeline(timeout=timeout)
    corpus = await pipeline.load(ContextMode(mode), url)

    if pipeline.state is ContextState.FAILED:
        print(f"Error: could not fetch {url}", file=sys.stderr)
        return 1

    print(corpus, end="")
    return 0


async def run_license(key, endpoint=None):
    """Resolve a license key and print the outcome."""
    from ghostchat.license import LicenseGate

    gate = LicenseGate(endpoint) if endpoint else LicenseGate()
    result = await gate.resolve_tier(key)

    status = "valid" if result.valid else "invalid"
    print(f"{status}: {result.tier.value} tier")
    return 0 if result.valid else 2


if __name__ == "__main__":
    sys.exit(main())
