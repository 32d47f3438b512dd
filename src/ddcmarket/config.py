"""
Local settings and key management.

Settings are read from ``~/.ddcmarket/.env`` (python-dotenv) and the process
environment, which wins.  Network parameters are never configured here;
they come from the configuration service.

Keys:
    PRIVATE_KEY         hex private key for the fixed-endpoint signer
    DDC_CONFIG_SERVICE  base URL of the configuration service
    DDC_ARTIFACTS_DIR   directory of compiled contract artifacts
    DDC_RPC_URL         override of the RPC URL reported by the service
    DDC_LOG_LEVEL       logging level for the CLI
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from eth_account import Account

from .errors import DDCError

DDCMARKET_DIR = Path.home() / ".ddcmarket"
DDCMARKET_ENV = DDCMARKET_DIR / ".env"

DEFAULT_CONFIG_SERVICE = "http://127.0.0.1:8080"
DEFAULT_LOG_LEVEL = "WARNING"


def _read_env(env_path: Optional[Path]) -> dict[str, str]:
    env_path = env_path or DDCMARKET_ENV
    values: dict[str, str] = {}
    if env_path.exists():
        values.update({k: v for k, v in dotenv_values(env_path).items() if v is not None})
    values.update(os.environ)
    return values


@dataclass(frozen=True)
class Settings:
    config_service: str = DEFAULT_CONFIG_SERVICE
    private_key: Optional[str] = None
    artifacts_dir: Optional[Path] = None
    rpc_url: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def load(cls, env_path: Optional[Path] = None) -> "Settings":
        values = _read_env(env_path)
        artifacts = values.get("DDC_ARTIFACTS_DIR")
        return cls(
            config_service=values.get("DDC_CONFIG_SERVICE") or DEFAULT_CONFIG_SERVICE,
            private_key=values.get("PRIVATE_KEY") or None,
            artifacts_dir=Path(artifacts).expanduser() if artifacts else None,
            rpc_url=values.get("DDC_RPC_URL") or None,
            log_level=(values.get("DDC_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )


def generate_eoa() -> tuple[str, str]:
    """
    Generate a new secp256k1 keypair.

    Returns:
        Tuple of (0x-prefixed private key, checksummed address)
    """
    private_key = "0x" + secrets.token_hex(32)
    return private_key, Account.from_key(private_key).address


def save_private_key(private_key: str, env_path: Optional[Path] = None) -> Path:
    """
    Save private key to .env file, keeping other entries.

    Args:
        private_key: 0x-prefixed hex private key
        env_path: Path to .env file (default: ~/.ddcmarket/.env)

    Returns:
        Path to the saved .env file
    """
    env_path = env_path or DDCMARKET_ENV
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
    existing["PRIVATE_KEY"] = private_key

    lines = [f"{k}={v}" for k, v in existing.items()]
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    # Set secure permissions on Unix
    if os.name != "nt":
        env_path.chmod(0o600)

    return env_path


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load private key from .env file or environment.

    Returns:
        0x-prefixed hex private key

    Raises:
        DDCError: MISSING_PRIVATE_KEY if none is configured
    """
    private_key = _read_env(env_path).get("PRIVATE_KEY")
    if not private_key:
        raise DDCError(
            f"PRIVATE_KEY not found. Set PRIVATE_KEY in {env_path or DDCMARKET_ENV} "
            f"or in the environment.",
            "MISSING_PRIVATE_KEY",
        )

    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


__all__ = ["DDCMARKET_ENV", "Settings", "generate_eoa", "load_private_key", "save_private_key"]
