"""
Rhine CLI entry point.

Provides command-line access to configuration, one-shot answers and an
interactive chat loop.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from rhine import __version__
from rhine.chat import SingleChat
from rhine.config.logging import get_logger, setup_logging
from rhine.config.settings import ApiNotConfiguredError, ModelCapability, Settings, load_settings
from rhine.errors import ChatError, ToolCallError
from rhine.tools.builtin import register_builtin_tools
from rhine.tools.registry import ToolRegistry, get_tool_registry

DEFAULT_CHARACTER = "You are a helpful assistant."


class Answer(BaseModel):
    """Structured answer printed by `ask --json`."""

    answer: str = Field(description="The answer to the question, in one or two sentences")
    confidence: float = Field(ge=0.0, le=1.0, description="How sure you are, from 0 to 1")
    key_points: list[str] = Field(default_factory=list, description="Supporting points")


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="rhine",
        description="Chat with an LLM endpoint: branching history, structured output and tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Rhine {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("config", help="Show current configuration")

    def add_session_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--api",
            default=None,
            help="Name of the configured API to use (default: first API with the 'chat' capability)",
        )
        sub.add_argument(
            "--character",
            default=DEFAULT_CHARACTER,
            help="Character prompt for the session",
        )
        sub.add_argument(
            "--stream",
            action="store_true",
            help="Stream the answer",
        )

    ask_parser = subparsers.add_parser("ask", help="Ask a single question")
    ask_parser.add_argument("question", help='Question to ask, e.g. "Roll 2d6 for me"')
    add_session_options(ask_parser)
    mode = ask_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--tools",
        action="store_true",
        help="Enable the builtin tools (roll_dice, current_time) and print their results",
    )
    mode.add_argument(
        "--json",
        action="store_true",
        help="Return a structured answer (answer, confidence, key_points)",
    )

    chat_parser = subparsers.add_parser(
        "chat",
        help="Interactive chat. Commands: /again, /usage, /quit",
    )
    add_session_options(chat_parser)

    return parser


def build_session(args, settings: Settings, registry: ToolRegistry | None = None) -> SingleChat:
    """Create the SingleChat described by the CLI arguments."""
    if args.api:
        return SingleChat.with_api_name(
            args.api, args.character, args.stream, settings=settings.llm, registry=registry
        )
    return SingleChat.with_model_capability(
        ModelCapability.CHAT, args.character, args.stream, settings=settings.llm, registry=registry
    )


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== Rhine Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nTemperature: {settings.llm.temperature} (JSON: {settings.llm.json_temperature})")
    logger.info(f"Max Tokens: {settings.llm.max_tokens or 'provider default'}")
    logger.info(f"Timeout: {settings.llm.timeout}s, Retries: {settings.llm.num_retries}")
    logger.info(f"Structured Output: {settings.llm.structured_output_mode}")
    logger.info(f"Tool Call Resolution: {settings.llm.tool_call_resolution}")
    logger.info(f"\nAPIs ({len(settings.llm.apis)}):")
    for api in settings.llm.apis:
        capabilities = ", ".join(capability.value for capability in api.capabilities)
        logger.info(f"  {api.name}: {api.model}")
        logger.info(f"    Base URL: {api.base_url or 'provider default'}")
        logger.info(f"    API Key: {'Set' if api.api_key else 'Not set'}")
        logger.info(f"    Capabilities: {capabilities or 'none'}")

    return 0


async def cmd_ask(args, settings: Settings) -> int:
    """Answer a single question and print the result."""
    logger = get_logger(__name__)

    registry = None
    if args.tools:
        registry = register_builtin_tools(get_tool_registry())
        registry.freeze()

    try:
        session = build_session(args, settings, registry)
    except ApiNotConfiguredError as e:
        logger.error(str(e))
        return 1

    try:
        if args.tools:
            session.set_tools(registry.tool_schemas())
            answer, results = await session.get_tool_answer(args.question)
            print(answer.strip())
            if results:
                print("\n--- Tool Results ---")
                for i, result in enumerate(results, start=1):
                    status = "ok" if result.ok else "error"
                    print(f"  [{i}] ({status}) {result.payload}")
        elif args.json:
            structured = await session.get_json_answer(args.question, Answer)
            print(structured.model_dump_json(indent=2))
        else:
            print(await session.get_answer(args.question))
    except (ChatError, ToolCallError) as e:
        print(f"\nLLM error: {e}", file=sys.stderr)
        for note in getattr(e, "__notes__", []):
            print(f"  {note}", file=sys.stderr)
        return 1

    print(f"\nTokens: {session.usage}")
    return 0


async def cmd_chat(args, settings: Settings) -> int:
    """Interactive chat loop."""
    logger = get_logger(__name__)

    try:
        session = build_session(args, settings)
    except ApiNotConfiguredError as e:
        logger.error(str(e))
        return 1

    print("Type a message. /again regenerates the last answer, /usage shows tokens, /quit exits.")
    last_question_path = None

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break

        line = line.strip()
        if not line:
            continue
        if line == "/quit":
            break
        if line == "/usage":
            print(f"Tokens used: {session.usage}")
            continue

        try:
            if line == "/again":
                if last_question_path is None:
                    print("Nothing to regenerate yet.")
                    continue
                answer = await session.get_answer_again(last_question_path)
            else:
                answer = await session.get_answer(line)
                # Parent of the reply is the user message just added
                last_question_path = session.message_path[:-1]
        except ChatError as e:
            print(f"LLM error: {e}", file=sys.stderr)
            continue

        print(answer)

    print(f"Tokens used: {session.usage}")
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    setup_logging(settings)

    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "ask":
        return asyncio.run(cmd_ask(args, settings))
    elif args.command == "chat":
        return asyncio.run(cmd_chat(args, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
