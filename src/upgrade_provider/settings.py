# settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

# The only organization whose forks of an upstream provider are trusted.
# Deliberately not configurable.
TRUSTED_FORK_ORG = "pulumi"

DEFAULT_ORG = "pulumi"
DEFAULT_BOT = "pulumi-bot"
DEFAULT_BRIDGE_MODULE = "github.com/pulumi/pulumi-terraform-bridge/v3"
DEFAULT_REMOTE = "origin"
ISSUE_LIMIT = 100

# Providers that used to live under github.com/terraform-providers and the
# organization that hosts them now.
DEFAULT_ORG_REMAP: Dict[str, str] = {
    "aws": "hashicorp",
    "azurerm": "hashicorp",
    "google": "hashicorp",
    "google-beta": "hashicorp",
    "kubernetes": "hashicorp",
    "random": "hashicorp",
    "tls": "hashicorp",
    "vault": "hashicorp",
    "consul": "hashicorp",
    "nomad": "hashicorp",
}


def parse_org_remap(raw: str) -> Dict[str, str]:
    """Parse ``name=org,name=org`` into a mapping."""
    remap: Dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, org = item.partition("=")
        if not sep or not name.strip() or not org.strip():
            raise ValueError(f"invalid org remap entry {item!r}: expected name=org")
        remap[name.strip()] = org.strip()
    return remap


@dataclass(frozen=True)
class Settings:
    gopath: Path
    organization: str = DEFAULT_ORG
    bot_author: str = DEFAULT_BOT
    bridge_module: str = DEFAULT_BRIDGE_MODULE
    remote: str = DEFAULT_REMOTE
    issue_limit: int = ISSUE_LIMIT
    org_remap: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ORG_REMAP))

    @property
    def cache_root(self) -> Path:
        """Where repositories are checked out: $GOPATH/src."""
        return self.gopath / "src"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        gopath = env.get("GOPATH") or str(Path.home() / "go")
        remap = dict(DEFAULT_ORG_REMAP)
        remap.update(parse_org_remap(env.get("UPGRADE_PROVIDER_ORG_REMAP", "")))

        return cls(
            gopath=Path(gopath).expanduser(),
            organization=env.get("UPGRADE_PROVIDER_ORG", DEFAULT_ORG),
            bot_author=env.get("UPGRADE_PROVIDER_BOT", DEFAULT_BOT),
            bridge_module=env.get("UPGRADE_PROVIDER_BRIDGE", DEFAULT_BRIDGE_MODULE),
            remote=env.get("UPGRADE_PROVIDER_REMOTE", DEFAULT_REMOTE),
            org_remap=remap,
        )

    def override(self, **changes) -> "Settings":
        """Return a copy with the non-None ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
