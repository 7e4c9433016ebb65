"""
FireSim Main Entry Point

Run the scenario generation API, or preview the prompts for a request file.
"""

import argparse
import json
import sys
from pathlib import Path

from firesim.core.config import get_settings
from firesim.core.exceptions import PromptSafetyViolation, RequestValidationError
from firesim.core.logging_config import get_logger, setup_logging


def main():
    """Main entry point for FireSim."""
    parser = argparse.ArgumentParser(
        description="FireSim - Bushfire scenario image generation"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the API server (default)")
    serve.add_argument("--host", type=str, default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port for the API server")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    prompts = subparsers.add_parser("prompts", help="Print the prompts for a request JSON file")
    prompts.add_argument("request_file", type=str, help="Path to a scenario request JSON file")

    args = parser.parse_args()
    settings = get_settings()

    if args.debug:
        log_level = "DEBUG"
    else:
        log_level = settings.log_level
    setup_logging(level=log_level, log_file=settings.log_file, verbose=args.verbose)

    logger = get_logger("main")

    if args.command == "prompts":
        sys.exit(run_prompts(Path(args.request_file)))

    from firesim.api.main import start_server

    host = getattr(args, "host", None) or settings.host
    port = getattr(args, "port", None) or settings.port
    logger.info(f"Starting FireSim API on {host}:{port}")
    start_server(host=host, port=port, reload=getattr(args, "reload", False) or settings.debug)


def run_prompts(request_file: Path) -> int:
    """Print the composed prompt for each requested viewpoint."""
    from firesim.core.models import ScenarioRequest
    from firesim.prompts.composer import generate_prompt_set

    try:
        payload = json.loads(request_file.read_text(encoding="utf-8"))
        request = ScenarioRequest.from_dict(payload)
        prompt_set = generate_prompt_set(request)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read {request_file}: {e}", file=sys.stderr)
        return 2
    except RequestValidationError as e:
        print("Invalid scenario request:", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        return 1
    except PromptSafetyViolation as e:
        print(f"Prompt rejected, blocked terms: {', '.join(e.blocked_terms)}", file=sys.stderr)
        return 1

    print(f"Prompt set {prompt_set.id} (template {prompt_set.template_version})")
    for prompt in prompt_set.prompts:
        print(f"\n[{prompt.viewpoint.value}]\n{prompt.prompt_text}")
    return 0


if __name__ == "__main__":
    main()
