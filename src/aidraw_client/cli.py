"""Command line front end over the service adapter.

Examples:
    aidraw balance
    aidraw generate "a lighthouse at dusk" --seed 7
    aidraw --user-id 42 login
    aidraw history --favorites --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from aidraw_client.adapter import ServiceAdapter, build_service_adapter
from aidraw_client.config import get_settings
from aidraw_client.errors import AdapterError
from aidraw_client.identity import Actor
from aidraw_client.models import GenerationParams

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="aidraw", description="AI image generation client.")
    parser.add_argument("--user-id", type=int, default=None, help="Act as this signed-in user.")
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON output.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("balance", help="Show the credit balance.")

    generate = commands.add_parser("generate", help="Generate one image.")
    generate.add_argument("prompt")
    generate.add_argument("--model", default=settings.default_model)
    generate.add_argument("--width", type=int, default=settings.default_width)
    generate.add_argument("--height", type=int, default=settings.default_height)
    generate.add_argument("--seed", type=int, default=None)
    generate.add_argument("--no-watermark", action="store_true")
    generate.add_argument("--enhance", action="store_true", help="Let the backend enhance the prompt.")

    enhance = commands.add_parser("enhance", help="Suggest a more detailed prompt.")
    enhance.add_argument("prompt")

    history = commands.add_parser("history", help="List generated images.")
    history.add_argument("--favorites", action="store_true")
    history.add_argument("--search", default=None, help="Filter by prompt keyword.")
    history.add_argument("--page", type=int, default=1)
    history.add_argument("--page-size", type=int, default=settings.default_page_size)

    favorite = commands.add_parser("favorite", help="Toggle the favorite flag of a record.")
    favorite.add_argument("record_id", type=int)

    delete = commands.add_parser("delete", help="Delete one or more history records.")
    delete.add_argument("record_ids", type=int, nargs="+")

    commands.add_parser("login", help="Move the anonymous balance to --user-id.")

    transactions = commands.add_parser("transactions", help="List credit transactions.")
    transactions.add_argument("--page", type=int, default=1)
    transactions.add_argument("--page-size", type=int, default=10)
    transactions.add_argument("--type", dest="transaction_type", default=None)

    popular = commands.add_parser("popular", help="List the most used prompts.")
    popular.add_argument("--limit", type=int, default=10)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, adapter: ServiceAdapter | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    actor = Actor(user_id=args.user_id) if args.user_id is not None else None
    try:
        adapter = adapter or build_service_adapter()
        result = _run(adapter, args, actor)
    except AdapterError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except ModelValidationError as exc:
        print(f"error: invalid arguments: {exc.errors()[0]['msg']}", file=sys.stderr)
        return 1
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    _print(result, as_json=args.json)
    return 0


def _run(adapter: ServiceAdapter, args: argparse.Namespace, actor: Actor | None) -> Any:
    if args.command == "balance":
        return adapter.credits.get_balance(actor)
    if args.command == "generate":
        params = GenerationParams(
            prompt=args.prompt,
            model=args.model,
            width=args.width,
            height=args.height,
            seed=args.seed,
            remove_watermark=args.no_watermark,
            enhance_prompt=args.enhance,
        )
        return adapter.generate_image(actor, params)
    if args.command == "enhance":
        outcome = adapter.tasks.enhance_prompt(args.prompt)
        if not outcome.ok:
            logger.warning("cli event=enhance_unchanged reason=%s", outcome.error)
        return outcome.value
    if args.command == "history":
        if args.search:
            return adapter.history.search(args.search, actor, args.page, args.page_size)
        if args.favorites:
            return adapter.history.list_favorites(actor, args.page, args.page_size)
        return adapter.history.list(actor, args.page, args.page_size)
    if args.command == "favorite":
        return {"toggled": adapter.history.toggle_favorite(args.record_id)}
    if args.command == "delete":
        ids = args.record_ids
        ok = adapter.history.delete(ids[0]) if len(ids) == 1 else adapter.history.batch_delete(ids)
        return {"deleted": ok}
    if args.command == "login":
        if actor is None:
            raise RuntimeError("login requires --user-id")
        return adapter.login(actor)
    if args.command == "transactions":
        return adapter.credits.list_transactions(actor, args.page, args.page_size, args.transaction_type)
    if args.command == "popular":
        return adapter.history.popular_prompts(args.limit)
    raise RuntimeError(f"Unknown command: {args.command}")


def _print(result: Any, *, as_json: bool) -> None:
    if isinstance(result, BaseModel):
        payload = result.model_dump(by_alias=True, mode="json")
    else:
        payload = result
    if as_json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key == "records" and isinstance(value, list):
                print("records:")
                for record in value:
                    print(f"  - {json.dumps(record, ensure_ascii=False)}")
                continue
            print(f"{key}: {value}")
    elif isinstance(payload, list):
        for index, item in enumerate(payload, start=1):
            print(f"{index}. {item}")
    else:
        print(payload)


if __name__ == "__main__":
    sys.exit(main())
