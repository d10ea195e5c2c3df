from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Sequence

from ..config import load_settings
from ..logging import get_logger, set_level
from ..orchestrator import log_environment_banner, open_runtime
from ..store.collections import COLLECTIONS

LOG = get_logger("cli-main")


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--data-dir", help="Directory holding the local database (default: var/storefront at project root)")
    p.add_argument("--remote-url", help="Override the remote mirror endpoint (defaults to env/.env)")
    p.add_argument("--offline", action="store_true", help="Do not talk to the remote mirror")
    p.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")


def _open(ns: argparse.Namespace, *, sync_on_start: bool = False):
    if ns.verbose:
        set_level("DEBUG")
    settings = load_settings(os.getcwd())
    if ns.data_dir:
        settings.data_dir = os.path.abspath(ns.data_dir)
    if ns.remote_url:
        settings.remote_url = ns.remote_url.rstrip("/")
    if ns.offline:
        settings.sync_enabled = False
    log_environment_banner(settings)
    return open_runtime(settings, sync_on_start=sync_on_start)


def _handle_init(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        print(rt.settings.db_path)
    return 0


def _handle_reset(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        rt.repository.reset()
        LOG.info("Local store reset to demo data")
    return 0


def _handle_pull(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        if rt.mirror is None:
            LOG.error("Remote mirror disabled; nothing to pull")
            return 2
        added = rt.mirror.reconcile(rt.repository)
        print(json.dumps(added))
    return 0


def _handle_push(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        if rt.mirror is None:
            LOG.error("Remote mirror disabled; nothing to push")
            return 2
        result = rt.mirror.push(ns.collection, rt.repository.get(ns.collection))
        result.log_errors()
        print(json.dumps({"pushed": result.pushed, "skipped": result.skipped, "errors": len(result.errors)}))
        return 0 if result.ok else 1


def _handle_resolve(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        store_id = ns.store_id
        if store_id is None:
            user = rt.repository.get_user(ns.user_id)
            store_id = user.store_id if user else None
        resolution = rt.resolver.resolve(ns.user_id, store_id)
        if resolution is None:
            LOG.error(f"No storefront could be resolved for {ns.user_id}")
            return 1
        print(json.dumps({
            "store_id": resolution.store.id,
            "code": resolution.store.code,
            "strategy": resolution.strategy,
            "repaired": resolution.writes,
        }, ensure_ascii=False))
    return 0


def _handle_show(ns: argparse.Namespace) -> int:
    with _open(ns) as rt:
        print(json.dumps(rt.repository.get(ns.collection), ensure_ascii=False, indent=2))
    return 0


def _handle_serve(ns: argparse.Namespace) -> int:
    from ..api import create_app
    import uvicorn

    with _open(ns, sync_on_start=True) as rt:
        app = create_app(
            rt.repository,
            mirror=rt.mirror,
            resolver=rt.resolver,
            allow_origins=ns.allow_origins,
        )
        uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="storefront-sync",
        description="Inspect and maintain the local storefront store and its remote mirror.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create the local store and seed demo data once")
    _add_common_args(init)
    init.set_defaults(handler=_handle_init)

    reset = subparsers.add_parser("reset", help="Drop all local data and re-seed the demo merchant")
    _add_common_args(reset)
    reset.set_defaults(handler=_handle_reset)

    pull = subparsers.add_parser("pull", help="Merge remote records missing locally (local always wins)")
    _add_common_args(pull)
    pull.set_defaults(handler=_handle_pull)

    push = subparsers.add_parser("push", help="Insert local records missing on the remote mirror")
    _add_common_args(push)
    push.add_argument("collection", choices=COLLECTIONS)
    push.set_defaults(handler=_handle_push)

    resolve = subparsers.add_parser("resolve", help="Resolve (and repair) the storefront owned by an account")
    _add_common_args(resolve)
    resolve.add_argument("user_id")
    resolve.add_argument("--store-id", help="Declared store id (default: the account's storeId)")
    resolve.set_defaults(handler=_handle_resolve)

    show = subparsers.add_parser("show", help="Print one local collection as JSON")
    _add_common_args(show)
    show.add_argument("collection", choices=COLLECTIONS)
    show.set_defaults(handler=_handle_show)

    serve = subparsers.add_parser("serve", help="Run the JSON API over the local store")
    _add_common_args(serve)
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_handle_serve)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
