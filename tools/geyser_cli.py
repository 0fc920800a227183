from __future__ import annotations
import argparse, sys
from typing import List, Optional

from plugin.config import load_config
from plugin.errors import GeyserPluginError
from plugin.logging_config import configure_logging


def _cmd_check(args) -> int:
    try:
        cfg = load_config(args.config)
    except GeyserPluginError as e:
        print(f"Invalid config: {e}")
        return 2
    print("=== Config ===")
    print(f"libpath             : {cfg.libpath}")
    print(f"channel capacity    : {cfg.channel_capacity}")
    print(f"saturation policy   : {cfg.saturation_policy.value}")
    print(f"poll interval       : {cfg.poll_interval_ms} ms")
    print(f"account data        : {'on' if cfg.account_data_notifications else 'off'}")
    print(f"transactions        : {'on' if cfg.transaction_notifications else 'off'}")
    print(f"entries             : {'on' if cfg.entry_notifications else 'off'}")
    return 0


def _cmd_run(args) -> int:
    from tools.host_sim import HostHarness, load_plugin

    try:
        cfg = load_config(args.config)
        plugin = load_plugin(args.libpath or cfg.libpath)
    except (GeyserPluginError, ImportError, AttributeError, TypeError, ValueError) as e:
        print(f"Cannot load plugin: {e}")
        return 2

    host = HostHarness(plugin)
    try:
        host.load(args.config)
    except GeyserPluginError as e:
        print(f"Plugin refused to load: {e}")
        return 2
    try:
        report = host.replay(slots=args.slots, accounts_per_slot=args.accounts, seed=args.seed)
    finally:
        runtime = getattr(plugin, "runtime", None)
        host.unload()

    print("\n=== Replay Summary ===")
    for etype, n in sorted(report.delivered.items(), key=lambda kv: kv[0].name):
        print(f"  delivered {etype.name:<12}: {n}")
    for etype, n in sorted(report.suppressed.items(), key=lambda kv: kv[0].name):
        print(f"  suppressed {etype.name:<11}: {n}")
    if runtime is not None:
        st = runtime.stats
        print(f"  worker processed      : {st.processed}")
        print(f"  worker errors         : {st.errors}")
        print(f"  dropped (saturation)  : {runtime.dropped}")
    if report.errors:
        print("\nErrors:")
        for e in report.errors:
            print(" -", e)
        return 2
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="geyser-sample", description="Geyser sample plugin tooling")
    ap.add_argument("--log-level", default="info")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_check = sub.add_parser("check-config", help="Validate a plugin config file")
    p_check.add_argument("--config", required=True)

    p_run = sub.add_parser("run", help="Load the plugin and replay a synthetic ledger through it")
    p_run.add_argument("--config", required=True)
    p_run.add_argument("--libpath", help="override the config's module:factory")
    p_run.add_argument("--slots", type=int, default=10)
    p_run.add_argument("--accounts", type=int, default=20, help="account updates per slot")
    p_run.add_argument("--seed", type=int, default=0)

    args = ap.parse_args(argv)
    configure_logging(args.log_level)

    if args.cmd == "check-config":
        return _cmd_check(args)
    return _cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
