"""Generate runtime key values for SnowDesk."""

from __future__ import annotations

import argparse
import secrets
from pathlib import Path

from snowdesk_app.core.config import DEFAULT_DB_KEY_ENV, DEFAULT_ENCRYPTION_KEY_ENV
from snowdesk_app.core.crypto import CryptoService

_LINE_FORMATS = {
    "shell": "{name}='{value}'",
    "shell-export": "export {name}='{value}'",
    "powershell": "$env:{name}='{value}'",
}


def render_lines(db_key: str, encryption_key: str, env_format: str) -> list[str]:
    template = _LINE_FORMATS[env_format]
    return [
        template.format(name=DEFAULT_DB_KEY_ENV, value=db_key),
        template.format(name=DEFAULT_ENCRYPTION_KEY_ENV, value=encryption_key),
    ]


def main() -> None:
    """Generate keys and optionally write/print env lines."""
    parser = argparse.ArgumentParser(description="Generate SnowDesk runtime keys.")
    parser.add_argument("--write-env", default=None, help="File to write the keys to.")
    parser.add_argument("--format", choices=sorted(_LINE_FORMATS), default="shell")
    parser.add_argument("--stdout", action="store_true", help="Also print the lines.")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing file.")
    args = parser.parse_args()

    lines = render_lines(
        secrets.token_urlsafe(48),
        CryptoService.generate_base64_key(),
        args.format,
    )

    if args.write_env:
        target_path = Path(args.write_env)
        if target_path.exists() and not args.force:
            print(f"[INFO] key file already exists: {target_path}")
            return
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        print(f"[INFO] key file written: {target_path}")

    if args.stdout:
        print("\n".join(lines))


if __name__ == "__main__":
    main()
