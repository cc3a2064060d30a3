"""
SafeMom command line.

Text display layer over the analysis wizard:

    safemom analyze https://blob.example/cerave.jpg --save
    safemom saved list
    safemom ping
    safemom serve --port 8000
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import httpx
import structlog
from dotenv import load_dotenv

from safemom.application.wizard.controller import WizardController
from safemom.config import get_saved_searches_path
from safemom.domain.analysis.models import AnalysisResult
from safemom.domain.shared.errors import DomainError
from safemom.domain.wizard.state import WizardState, WizardStep
from safemom.infrastructure.http.analysis_api import SafeMomApiClient
from safemom.infrastructure.http.connectivity import ConnectivityMonitor
from safemom.infrastructure.http.orchestrator import RequestOrchestrator
from safemom.infrastructure.storage.saved_searches import JsonFileStorage, SavedSearchStore
from safemom.logging_config import configure_logging

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

UNEXPECTED_ERROR_MESSAGE = "❌ Something went wrong. Please try again."


# ═══════════════════════════════════════════════════════════
# OUTPUT
# ═══════════════════════════════════════════════════════════


def print_error(state: WizardState) -> None:
    print(f"❌ {state.error}")
    diagnostics = state.error_diagnostics
    if diagnostics is None:
        return
    if diagnostics.status_code is not None:
        print(f"   status: {diagnostics.status_code}  url: {diagnostics.url}")
    if diagnostics.error_pattern is not None:
        print(f"   fix: {diagnostics.error_pattern.solution}")


def print_results(state: WizardState) -> None:
    print("=" * 50)
    print(f"📦 {state.product_name}")
    if state.is_food:
        print("   (food product)")
    if state.alcohol_warning:
        print(f"🍷 {state.alcohol_warning}")

    report = state.safety_report
    if report is None:
        return

    if report.parsing_error:
        print("⚠️  The analysis could not be read reliably. Verify with a professional.")

    if report.is_safe:
        print("✅ Safe during pregnancy")
    else:
        print("🚫 Not recommended during pregnancy")

    for ingredient in report.harmful_ingredients:
        print(f"   • {ingredient.name}: {ingredient.reason}")
    print("=" * 50)


def print_saved(result: AnalysisResult) -> None:
    verdict = "safe" if result.is_safe else "not safe"
    print(f"{result.id}  {result.timestamp}  {result.product}  ({verdict})")


# ═══════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════


async def run_wizard(wizard: WizardController) -> bool:
    """
    Drive a loaded wizard to the results step.

    Returns:
        True if the results step was reached
    """
    state = wizard.state

    if state.step == WizardStep.IDENTIFY and not state.is_unidentifiable:
        print("🔍 Step 1: identifying product...")
        await wizard.identify_product()
        state = wizard.state

    if state.is_unidentifiable:
        print(f"🤷 {state.error}")
        return False
    if state.error:
        print_error(state)
        return False

    if state.step == WizardStep.FIND_INGREDIENTS:
        print(f"🧪 Step 2: finding ingredients for {state.product_name}...")
        await wizard.find_ingredients()
        if state.error:
            print_error(state)
            return False

    if state.step == WizardStep.ANALYZE_SAFETY:
        print(f"🔬 Step 3: analyzing {len(state.ingredients)} ingredients...")
        await wizard.analyze_ingredients()
        if state.error:
            print_error(state)
            return False

    print_results(state)
    return state.step == WizardStep.RESULTS


async def _analyze(args: argparse.Namespace) -> int:
    store = SavedSearchStore(JsonFileStorage(args.store or get_saved_searches_path()))
    monitor = ConnectivityMonitor()

    async with RequestOrchestrator(
        base_url=args.base_url, is_online=monitor.is_online
    ) as orchestrator:
        api = SafeMomApiClient(
            orchestrator,
            timeout_ms=args.timeout_ms,
            retries=args.retries,
            retry_delay_ms=args.retry_delay_ms,
        )
        wizard = WizardController(api=api, store=store, is_online=monitor.is_online)
        wizard.load_image(args.image_url, detected_product=args.product)

        if not await run_wizard(wizard):
            return EXIT_FAILURE

        if args.save:
            result = wizard.save_result()
            print(f"💾 Saved as {result.id}")

    return EXIT_OK


def _saved(args: argparse.Namespace) -> int:
    store = SavedSearchStore(JsonFileStorage(args.store or get_saved_searches_path()))

    if args.saved_command == "list":
        results = store.list()
        if not results:
            print("No saved searches.")
        for result in results:
            print_saved(result)
        return EXIT_OK

    if args.saved_command == "show":
        result = store.get(args.id)
        if result is None:
            print(f"❌ No saved search with id {args.id}")
            return EXIT_FAILURE
        print_results(WizardState.from_saved(result))
        return EXIT_OK

    if args.saved_command == "delete":
        if not store.delete(args.id):
            print(f"❌ No saved search with id {args.id}")
            return EXIT_FAILURE
        print(f"🗑️  Deleted {args.id}")
        return EXIT_OK

    store.clear()
    print("🗑️  All saved searches removed")
    return EXIT_OK


async def _ping(args: argparse.Namespace) -> int:
    async with RequestOrchestrator(base_url=args.base_url) as orchestrator:
        monitor = ConnectivityMonitor(orchestrator)
        reachable = await monitor.check()

    if reachable:
        print(f"✅ API reachable at {orchestrator.base_url}")
        return EXIT_OK

    error = monitor.last_outcome.error if monitor.last_outcome else "unknown error"
    print(f"❌ API not reachable at {orchestrator.base_url}: {error}")
    return EXIT_FAILURE


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("safemom.app:app", host=args.host, port=args.port)
    return EXIT_OK


# ═══════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safemom", description="Pregnancy safety check for products"
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    parser.add_argument("--store", default=None, help="Saved searches file")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Analyze a product image")
    analyze.add_argument("image_url", help="Image URL or data URL")
    analyze.add_argument("--base-url", default=None, help="API base URL")
    analyze.add_argument("--product", default=None, help="Product name, if already known")
    analyze.add_argument("--save", action="store_true", help="Save the result")
    analyze.add_argument("--timeout-ms", type=int, default=None)
    analyze.add_argument("--retries", type=int, default=None)
    analyze.add_argument("--retry-delay-ms", type=int, default=None)

    saved = commands.add_parser("saved", help="Manage saved searches")
    saved_commands = saved.add_subparsers(dest="saved_command", required=True)
    saved_commands.add_parser("list", help="List saved searches")
    show = saved_commands.add_parser("show", help="Show one saved search")
    show.add_argument("id")
    delete = saved_commands.add_parser("delete", help="Delete one saved search")
    delete.add_argument("id")
    saved_commands.add_parser("clear", help="Delete all saved searches")

    ping = commands.add_parser("ping", help="Check API connectivity")
    ping.add_argument("--base-url", default=None, help="API base URL")

    serve = commands.add_parser("serve", help="Run the diagnostics API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def run_command(args: argparse.Namespace) -> int:
    if args.command == "analyze":
        return asyncio.run(_analyze(args))
    if args.command == "saved":
        return _saved(args)
    if args.command == "ping":
        return asyncio.run(_ping(args))
    return _serve(args)


def main(argv: Optional[List[str]] = None) -> int:
    """Top-level error boundary."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return run_command(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return EXIT_INTERRUPTED
    except DomainError as e:
        logger.warning("cli_domain_error", command=args.command, error=str(e))
        print(f"❌ {e}")
        return EXIT_FAILURE
    except (httpx.HTTPError, OSError) as e:
        logger.error("cli_io_error", command=args.command, error=str(e))
        print(UNEXPECTED_ERROR_MESSAGE)
        return EXIT_FAILURE
    except Exception:
        logger.exception("cli_unexpected_error", command=args.command)
        print(UNEXPECTED_ERROR_MESSAGE)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
