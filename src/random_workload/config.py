import copy
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, NonNegativeFloat, PositiveFloat, PositiveInt

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

cfg = tomllib.loads(config_file.read_text())


class RippledSettings(BaseModel):
    local: str = "127.0.0.1"
    docker: str = "rippled"
    rpc_port: PositiveInt = 5005


class FundingAccount(BaseModel):
    seed: str
    algorithm: str = "secp256k1"


class Timeouts(BaseModel):
    startup: PositiveFloat = 600
    rpc: PositiveFloat = 2.0
    receipt: PositiveFloat = 90.0
    idle_backoff: NonNegativeFloat = 5.0
    pending_backoff: NonNegativeFloat = 1.0


class TransferSettings(BaseModel):
    fee_drops: PositiveInt = 10


class ScriptSettings(BaseModel):
    duration: NonNegativeFloat = 100
    path: Path = Path("run.json")


class Settings(BaseModel):
    rippled: RippledSettings
    funding_account: FundingAccount
    timeout: Timeouts = Timeouts()
    transfer: TransferSettings = TransferSettings()
    script: ScriptSettings = ScriptSettings()

    @property
    def rpc_url(self) -> str:
        if url := os.getenv("RPC_URL"):
            return url
        host = self.rippled.docker if Path("/.dockerenv").is_file() else self.rippled.local
        host = os.getenv("RIPPLED_IP", host)
        return f"http://{host}:{self.rippled.rpc_port}"


def _merge(base: dict, override: dict) -> dict:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


def settings(**overrides) -> Settings:
    """Validate the packaged config, with per-section overrides (e.g. ``script={"duration": 5}``)."""
    data = copy.deepcopy(cfg)
    return Settings.model_validate(_merge(data, overrides))
