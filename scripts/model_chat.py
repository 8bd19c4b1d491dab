#!/usr/bin/env python
"""Lightweight CLI for chatting with the configured model endpoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Iterable

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.clients.model_gateway import ChatMessage, ModelGateway, ModelGatewayError  # noqa: E402
from app.core.config import get_settings  # noqa: E402


def _build_gateway() -> ModelGateway:
    return ModelGateway(get_settings().model)


def _print_blocks(role: str, parts: Iterable[str]) -> None:
    header = "You" if role == "user" else "Model"
    print(f"{header}: ")
    for part in parts:
        print(part)
    print()


def run_once(message: str, model_name: str | None, gateway: ModelGateway | None = None) -> int:
    gateway = gateway or _build_gateway()
    model = model_name or get_settings().model.default_model
    reply = asyncio.run(gateway.call_chat(model, [{"role": "user", "content": message}]))
    _print_blocks("user", [message])
    _print_blocks("model", [reply or "(no text response)"])
    return 0


def run_interactive(model_name: str | None, gateway: ModelGateway | None = None) -> int:
    gateway = gateway or _build_gateway()
    model = model_name or get_settings().model.default_model
    history: list[ChatMessage] = []
    print(f"Interactive session with {model}. Type 'exit' or 'quit' to end.\n")
    while True:
        try:
            message = input("You: ")
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            return 0
        if message.strip().lower() in {"exit", "quit"}:
            print("Goodbye!")
            return 0
        if not message.strip():
            continue
        history.append({"role": "user", "content": message})
        reply = asyncio.run(gateway.call_chat(model, history))
        history.append({"role": "assistant", "content": reply})
        print(f"Model: {reply or '(no text response)'}\n")


def list_models(gateway: ModelGateway | None = None) -> int:
    gateway = gateway or _build_gateway()
    try:
        catalogue = asyncio.run(gateway.list_models())
    except ModelGatewayError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(catalogue, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Send prompts to the model endpoint or run an interactive chat session."
    )
    parser.add_argument(
        "message",
        nargs="?",
        help="Single message to send. If omitted, interactive mode is started.",
    )
    parser.add_argument(
        "--model",
        dest="model",
        default=None,
        help="Optional override for the model name.",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="Print the models available at the configured base URL and exit.",
    )

    args = parser.parse_args(argv)

    if args.list_models:
        return list_models()
    if args.message:
        return run_once(args.message, args.model)
    return run_interactive(args.model)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
