"""Entry point: python -m openapi_proxy SPEC.json [-o TOOLS.md]

Reads an API document, builds the tool registry and writes a Markdown
catalog of the generated tools. Connection settings come from the
OPENAPI_PROXY_* environment variables (see config.py).
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from .codegen import DEFAULT_OUTPUT, generate
from .config import ProxyConfig
from .context_builder import build_context
from .loader import load_spec


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="openapi_proxy")
    parser.add_argument("spec", type=Path, help="API document (JSON)")
    parser.add_argument("-o", "--output", type=Path, default=DEFAULT_OUTPUT)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    env = dict(os.environ)
    env.setdefault("OPENAPI_PROXY_BASE_URL", "http://localhost")
    config = ProxyConfig.from_env(env)

    spec = load_spec(args.spec)
    context = build_context(spec, config)
    generate(context, args.output)


if __name__ == "__main__":
    main()
