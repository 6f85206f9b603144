"""Entry point for `python -m openclaw_pod` / `openclaw-pod`.

Subcommands:
    openclaw-pod start            Create and start the pod (gateway + browser)
    openclaw-pod stop             Stop and remove the pod
    openclaw-pod restart          Stop then start
    openclaw-pod status           Show pod and container status
    openclaw-pod logs             Tail gateway logs
    openclaw-pod logs-browser     Tail browser sidecar logs
    openclaw-pod setup            Run the onboarding wizard (interactive)
    openclaw-pod pairing          List pending Telegram pairing codes
    openclaw-pod approve CODE     Approve a Telegram pairing code
    openclaw-pod exec ARGS...     Run the OpenClaw CLI inside the gateway
    openclaw-pod shell            Open a shell in the gateway container
"""

from __future__ import annotations

import argparse
import sys

from pydantic import ValidationError

from openclaw_pod.config import Settings, get_settings
from openclaw_pod.errors import OpenClawPodError
from openclaw_pod.orchestrator import PodOrchestrator
from openclaw_pod.runtime import get_runtime
from openclaw_pod.specs import Role
from openclaw_pod.types import PodState, PodStatus, StartResult

_ENV_HELP = """\
Environment overrides:
  OPENCLAW_POD_NAME          Pod name          (default: openclaw)
  OPENCLAW_CONFIG_DIR        Config dir        (default: ~/.openclaw)
  OPENCLAW_WORKSPACE_DIR     Workspace dir     (default: ~/.openclaw/workspace)
  OPENCLAW_BROWSER_DATA_DIR  Browser data      (default: ~/.openclaw/browser-data)
  OPENCLAW_ENV_FILE          Secrets file      (default: ~/.openclaw/.env)
  OPENCLAW_GATEWAY_PORT      Host gateway port (default: 18789)
  OPENCLAW_NOVNC_PORT        Host noVNC port   (default: 6080)
  OPENCLAW_GATEWAY_BIND      Gateway bind mode (default: lan)
  OPENCLAW_GW_IMAGE          Gateway image     (default: openclaw-gateway:local)
  OPENCLAW_BR_IMAGE          Browser image     (default: openclaw-browser:local)
  OPENCLAW_GATEWAY_TOKEN     Gateway auth token (required; may live in the secrets file)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openclaw-pod",
        description="OpenClaw Telegram-only pod (rootless, read-only Podman)",
        epilog=_ENV_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.add_parser("start", help="Create and start the pod (gateway + browser)")
    sub.add_parser("stop", help="Stop and remove the pod")
    sub.add_parser("restart", help="Stop then start")
    sub.add_parser("status", help="Show pod and container status")
    sub.add_parser("logs", help="Tail gateway logs")
    sub.add_parser("logs-browser", help="Tail browser sidecar logs")
    sub.add_parser("setup", help="Run onboarding wizard (interactive)")
    sub.add_parser("pairing", help="List pending Telegram pairing codes")
    approve = sub.add_parser("approve", help="Approve a Telegram pairing code")
    approve.add_argument("code")
    # Parsed by hand in main() so flags pass through untouched
    exec_ = sub.add_parser("exec", help="Run openclaw CLI inside the gateway", add_help=False)
    exec_.add_argument("args", nargs=argparse.REMAINDER)
    sub.add_parser("shell", help="Open a shell in the gateway container")
    sub.add_parser("help", help="Show this message")
    return parser


def _print_start(result: StartResult, settings: Settings) -> None:
    print(f"Pod {result.pod} started.")
    print(f"  Gateway dashboard : {result.gateway_url}")
    print(f"  noVNC (CAPTCHAs)  : {result.novnc_url}")
    print("  Gateway logs      : openclaw-pod logs")
    print("  Browser logs      : openclaw-pod logs-browser")
    if not result.readiness.ready:
        attempts = result.readiness.attempts
        print(f"  Warning           : browser sidecar not ready after {attempts} checks")
    print()
    print("Next steps:")
    print(f"  1. Edit {settings.env_file} with your TELEGRAM_BOT_TOKEN and ANTHROPIC_API_KEY")
    json_path = settings.config_dir / "openclaw.json"
    print(f"  2. Edit {json_path}: set allowFrom to your Telegram user ID")
    print("  3. Restart: openclaw-pod restart")
    print("  4. DM your bot, then: openclaw-pod approve <CODE>")


def _print_status(status: PodStatus) -> None:
    if status.state is PodState.ABSENT:
        print(f"Pod {status.name} does not exist.")
        return
    print(f"{'POD':<20} {'STATE':<18} CONTAINERS")
    print(f"{status.name:<20} {status.state.value:<18} {len(status.containers)}")
    print()
    print(f"{'NAME':<28} {'STATUS':<24} PORTS")
    for c in status.containers:
        print(f"{c.name:<28} {c.status or c.state:<24} {', '.join(c.ports)}")


def _follow(orchestrator: PodOrchestrator, role: Role) -> int:
    stream = orchestrator.logs(role)
    try:
        for line in stream:
            print(line, flush=True)
    except KeyboardInterrupt:
        return 130
    finally:
        stream.close()
    return 0


def dispatch(args: argparse.Namespace, orchestrator: PodOrchestrator) -> int:
    """Route a parsed verb to the orchestrator. Returns the process exit code."""
    match args.command:
        case "start":
            _print_start(orchestrator.start(), orchestrator.settings)
        case "stop":
            orchestrator.stop()
        case "restart":
            _print_start(orchestrator.restart(), orchestrator.settings)
        case "status":
            _print_status(orchestrator.status())
        case "logs":
            return _follow(orchestrator, "gateway")
        case "logs-browser":
            return _follow(orchestrator, "browser")
        case "setup":
            return orchestrator.setup()
        case "pairing":
            return orchestrator.pairing()
        case "approve":
            return orchestrator.approve(args.code)
        case "exec":
            return orchestrator.exec_gateway(args.args)
        case "shell":
            return orchestrator.shell()
        case _:
            raise ValueError(f"Unknown command: {args.command}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    if argv[:1] == ["exec"]:
        args = argparse.Namespace(command="exec", args=argv[1:])
    else:
        args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        sys.exit(0)

    try:
        settings = get_settings()
        orchestrator = PodOrchestrator(settings, get_runtime(settings))
        code = dispatch(args, orchestrator)
    except ValidationError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)
    except (OpenClawPodError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
