"""
Run configuration parsing and validation.

Provides TOML-based configuration for assembling a process model:

    compartments = ["trunk"]          # optional, modeled in addition

    [options]
    timestep = 1.0                    # days
    suppress_competitive_et = false

    [logging]
    level = "INFO"
    format = "console"

    [[processes]]
    type = "canopy_evaporation"
    variant = "rutter"

    [[processes]]
    type = "canopy_drip"
    variant = "slowdrain"
    to = "ponded_water"

    [[processes]]
    type = "advection"
    constituent = "nitrate"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml

from hydroflux.process.errors import ConfigurationError
from hydroflux.process.state import Compartment, SVType

__all__ = ["ModelOptions", "ProcessSpec", "LoggingConfig", "ModelConfig"]


@dataclass(frozen=True)
class ModelOptions:
    """Process-independent run settings.

    Attributes
    ----------
    timestep : float
        Timestep length (d), > 0
    suppress_competitive_et : bool
        When True, each evaporative process sees the full PET regardless
        of what earlier processes consumed this step
    """

    timestep: float = 1.0
    suppress_competitive_et: bool = False

    def __post_init__(self):
        if not self.timestep > 0.0:
            raise ValueError(f"timestep must be positive, got {self.timestep}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelOptions":
        unknown = set(data) - {"timestep", "suppress_competitive_et"}
        if unknown:
            raise ValueError("Unknown options: " + ", ".join(sorted(unknown)))
        return cls(
            timestep=float(data.get("timestep", 1.0)),
            suppress_competitive_et=bool(data.get("suppress_competitive_et", False)),
        )


@dataclass(frozen=True)
class ProcessSpec:
    """One process entry of the configuration, before construction."""

    type: str
    variant: Optional[str] = None
    to: Optional[str] = None
    to_level: Optional[int] = None
    constituent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessSpec":
        if "type" not in data:
            raise ValueError(f"Process entry missing 'type': {data}")
        return cls(
            type=str(data["type"]).lower(),
            variant=str(data["variant"]).lower() if data.get("variant") else None,
            to=str(data["to"]).lower() if data.get("to") else None,
            to_level=int(data["to_level"]) if data.get("to_level") is not None else None,
            constituent=data.get("constituent"),
        )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "console"
    output: str = "stderr"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            format=data.get("format", "console"),
            output=data.get("output", "stderr"),
        )


@dataclass
class ModelConfig:
    """Full run configuration: options, process list, logging."""

    options: ModelOptions = field(default_factory=ModelOptions)
    processes: List[ProcessSpec] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    compartments: List[str] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelConfig":
        """Create from a parsed TOML mapping."""
        processes = data.get("processes", [])
        if not isinstance(processes, list):
            raise ValueError("'processes' must be an array of tables")
        return cls(
            options=ModelOptions.from_dict(data.get("options", {})),
            processes=[ProcessSpec.from_dict(p) for p in processes],
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            compartments=[str(c).lower() for c in data.get("compartments", [])],
        )

    @classmethod
    def from_toml(cls, path: Union[str, Path]) -> "ModelConfig":
        """Load configuration from a TOML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r") as f:
            raw = toml.load(f)
        config = cls.from_dict(raw)
        config.source = path
        return config

    def extra_compartments(self) -> List[Compartment]:
        """Compartments modeled in addition to those processes require."""
        comps = []
        for name in self.compartments:
            try:
                comps.append(Compartment(SVType(name)))
            except ValueError:
                raise ConfigurationError(f"Unknown compartment type '{name}'") from None
        return comps
