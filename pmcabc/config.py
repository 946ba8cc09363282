from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator


class EpsilonConfig(BaseModel):
    alpha_min: float = Field(0.1, gt=0.0, le=1.0)
    alpha_max: float = Field(0.9, gt=0.0, le=1.0)
    tighten_tolerance: float = Field(0.1, ge=0.0)  # fraction above target before tightening
    relax_tolerance: float = Field(0.1, ge=0.0, lt=1.0)  # fraction below target before relaxing
    distance_cutoff: float = Field(10.0, gt=0.0)  # distances >= cutoff are ignored
    floor: float = Field(5e-3, ge=0.0)  # run stops once epsilon drops below

    @model_validator(mode="after")
    def _check_alpha_range(self) -> "EpsilonConfig":
        if self.alpha_min > self.alpha_max:
            raise ValueError(
                f"alpha_min ({self.alpha_min}) must not exceed alpha_max ({self.alpha_max})"
            )
        return self


class KernelConfig(BaseModel):
    bandwidth_scale: float = Field(2.0, gt=0.0)
    covariance_jitter: float = Field(1e-6, ge=0.0)
    draw_jitter: float = Field(1e-5, ge=0.0)
    max_perturb_attempts: int = Field(10000, ge=1)


class PMCConfig(BaseModel):
    epsilon_0: float = Field(1.0, ge=0.0)
    min_samples: int = Field(10, ge=2)
    steps: int = Field(10, ge=1)
    sample_only: bool = False
    max_iter: int = Field(10000, ge=1)
    min_acc_rate: float = Field(1e-4, ge=0.0, le=1.0)
    target_acc_rate: float = Field(0.01, gt=0.0, le=1.0)
    failure_distance: float = 1e5
    seed: Optional[int] = None
    epsilon: EpsilonConfig = Field(default_factory=EpsilonConfig)
    kernel: KernelConfig = Field(default_factory=KernelConfig)

    def with_overrides(self, **overrides: Any) -> "PMCConfig":
        """Return a validated copy with top-level fields replaced."""
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise ConfigError(f"Unknown PMC option(s): {', '.join(sorted(unknown))}")
        try:
            return PMCConfig.model_validate({**self.model_dump(), **overrides})
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc


class ConfigError(Exception):
    pass


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str | Path) -> PMCConfig:
    path = Path(path)
    data = yaml.safe_load(path.read_text()) or {}
    base_path = data.get("base")
    if base_path:
        base_data = yaml.safe_load((path.parent / base_path).read_text()) or {}
        data = deep_merge(base_data, data)
        data.pop("base", None)
    try:
        return PMCConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def dump_config(cfg: PMCConfig, path: str | Path) -> None:
    path = Path(path)
    path.write_text(yaml.safe_dump(cfg.model_dump(), sort_keys=False))
