#!/usr/bin/env python3
"""
vibesearch runner

Ask an LLM where an element sits in a list.

Usage:
    python run_vibe_search.py --target bar foo bar foobar
    python run_vibe_search.py --strategy hash --target 53 123 53 351 412
    python run_vibe_search.py --target 2 --target 5 1 2 3 4 5
    python run_vibe_search.py --dry-run --target bar foo bar foobar
"""
from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from application.services.search_service import VibeSearchClient
from configs.search_config import VibeSearchConfig
from domain.protocol.strategies import EncodingStrategy, encode_frame
from infrastructure.llm.exceptions import LLMConfigurationError

_logging_fmt = '%(asctime)s - %(name)-30s - %(levelname)-8s - %(message)s'
logger = logging.getLogger(__name__)


def _coerce(raw: str, strategy: EncodingStrategy) -> Any:
    """Items arrive as text; byte strategies hash their UTF-8 form, serde parses JSON literals."""
    if strategy is EncodingStrategy.CRYPTO_HASH:
        return raw.encode('utf-8')
    if strategy is EncodingStrategy.STRUCTURED:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    if strategy is EncodingStrategy.STABLE_HASH:
        try:
            return int(raw)
        except ValueError:
            return raw
    return raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Find element positions by asking an LLM.')
    parser.add_argument('items', nargs='*', help='Collection to search, in order.')
    parser.add_argument('-t', '--target', action='append', required=True, help='Element to find (repeat for a batch).')
    parser.add_argument('-s', '--strategy', default=EncodingStrategy.LITERAL.value,
                        choices=[s.value for s in EncodingStrategy], help='How elements are encoded into the frame.')
    parser.add_argument('-c', '--config', type=Path, default=None, help='YAML config file (default: configs/default/search_config.yaml).')
    parser.add_argument('--model', default=None, help='Override the configured chat model.')
    parser.add_argument('--dry-run', action='store_true', help='Print the frame(s) instead of calling the API.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging.')
    return parser


async def _run(args: argparse.Namespace) -> int:
    strategy = EncodingStrategy.parse(args.strategy)
    items: List[Any] = [_coerce(item, strategy) for item in args.items]
    targets: List[Any] = [_coerce(target, strategy) for target in args.target]

    config = VibeSearchConfig.from_yaml(args.config) if args.config else VibeSearchConfig.load_default()
    if args.model:
        config = config.with_model(args.model)

    if args.dry_run:
        for target in targets:
            sys.stdout.write(encode_frame(items, target, strategy).render())
        return 0

    try:
        client = VibeSearchClient.from_env(config)
    except LLMConfigurationError as exc:
        logger.error('%s', exc)
        return 2

    if len(targets) == 1:
        result: Any = await client.find_with(strategy, items, targets[0])
    else:
        result = await client.find_batch(items, targets, strategy=strategy)
    print(json.dumps(result))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=_logging_fmt, datefmt='%H:%M:%S')
    for quiet in ('httpx', 'httpcore'):
        logging.getLogger(quiet).setLevel(logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == '__main__':
    sys.exit(main())
