import sys
import subprocess


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: devctl <keys|network|sshconf> [args...]")
        sys.exit(1)

    subcommand = sys.argv[1]
    if subcommand not in ("keys", "network", "sshconf"):
        print(f"Unknown subcommand: {subcommand}")
        sys.exit(1)
    subcommand_args = sys.argv[2:]

    cmd = [sys.executable, "-m", f"devbastion.cli.{subcommand}"] + subcommand_args
    sys.exit(subprocess.call(cmd))
