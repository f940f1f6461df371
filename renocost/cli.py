"""
Generate a renovation estimate from the command line.

Reads an EstimateRequest as JSON (snake_case field names), attaches any
photos given with --image, runs the estimate pipeline and writes the
response contract JSON.

Usage:
  export GEMINI_API_KEY=...
  renocost-estimate request.json --image before1.jpg --image before2.jpg --out estimate.json
  renocost-estimate --validate-key
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from renocost.config.settings import settings
from renocost.config.errors import (
    ConfigurationError,
    ModelUnavailableError,
    TransportError,
    UnusableResponseError,
)
from renocost.models.estimate_request import EstimateRequest
from renocost.services.collaborators import CredentialStore, EnvironmentCredentialStore, StaticCredentialStore
from renocost.services.estimate_pipeline import EstimatePipeline
from renocost.services.model_orchestrator import ModelOrchestrator
from renocost.services.transport import TransportService
from renocost.utils.logging import configure_logging

EXIT_OK = 0
EXIT_BAD_REQUEST = 2
EXIT_CONFIGURATION = 3
EXIT_MODEL_UNAVAILABLE = 4
EXIT_UNUSABLE = 5
EXIT_ABORTED = 6


def load_request(path: Path, image_paths: List[Path]) -> EstimateRequest:
    """Load a request file and attach image bytes in the given order.

    Raises:
        OSError: A file cannot be read.
        ValueError: The request JSON is malformed or invalid.
    """
    data: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Request file must contain a JSON object")
    data["images"] = [p.read_bytes() for p in image_paths]
    return EstimateRequest.model_validate(data)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a renovation cost estimate")
    parser.add_argument("request", nargs="?", help="Path to the estimate request JSON file")
    parser.add_argument(
        "--image",
        action="append",
        default=[],
        help="Photo of the area (repeatable, oldest first)",
    )
    parser.add_argument("--out", required=False, help="Output file path (defaults to stdout)")
    parser.add_argument("--api-key", required=False, help="Gemini API key (defaults to GEMINI_API_KEY)")
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Overall deadline in seconds for the whole estimate",
    )
    parser.add_argument("--validate-key", action="store_true", help="Only check that the API key works")
    parser.add_argument("--log-level", default=None, help="Log level (defaults to LOG_LEVEL)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser


async def _validate_key(credential_store: CredentialStore) -> int:
    async with TransportService() as transport:
        orchestrator = ModelOrchestrator(credential_store=credential_store, transport=transport)
        valid = await orchestrator.validate_api_key()
    print("API key is valid" if valid else "API key was rejected", file=sys.stderr)
    return EXIT_OK if valid else EXIT_CONFIGURATION


async def _estimate(
    request: EstimateRequest,
    credential_store: CredentialStore,
    deadline: Optional[float],
) -> Dict[str, Any]:
    async with TransportService() as transport:
        pipeline = EstimatePipeline(
            orchestrator=ModelOrchestrator(credential_store=credential_store, transport=transport),
        )
        estimate = await asyncio.wait_for(pipeline.run(request), timeout=deadline)
    return estimate.to_contract()


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_logs=args.json_logs)

    try:
        settings.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION

    credential_store: CredentialStore = (
        StaticCredentialStore(args.api_key) if args.api_key else EnvironmentCredentialStore()
    )

    try:
        if args.validate_key:
            return asyncio.run(_validate_key(credential_store))

        if not args.request:
            parser.error("a request file is required unless --validate-key is given")

        try:
            request = load_request(Path(args.request), [Path(p) for p in args.image])
        except (OSError, ValueError, ValidationError) as e:
            print(f"Invalid request: {e}", file=sys.stderr)
            return EXIT_BAD_REQUEST

        contract = asyncio.run(_estimate(request, credential_store, args.deadline))

    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except ModelUnavailableError as e:
        print(f"No model tier could produce an estimate: {e.message}", file=sys.stderr)
        return EXIT_MODEL_UNAVAILABLE
    except UnusableResponseError as e:
        print(f"Model response was unusable: {e.message}", file=sys.stderr)
        return EXIT_UNUSABLE
    except (TransportError, asyncio.TimeoutError) as e:
        print(f"Estimate aborted: {e}", file=sys.stderr)
        return EXIT_ABORTED

    output = json.dumps(contract, indent=2)
    if args.out:
        Path(args.out).write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {args.out}", file=sys.stderr)
    else:
        print(output)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
