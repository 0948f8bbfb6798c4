import argparse
import os
import sys

from hydroflux.config import ModelConfig
from hydroflux.logging import configure_logging
from hydroflux.process.errors import ConfigurationError
from hydroflux.process.model import ProcessModel
from hydroflux.units import param_units, state_units


def _load_model(args: argparse.Namespace):
    """Load config, configure logging, assemble the model.

    Returns (config, model), or None after printing the failure.
    """
    if not os.path.exists(args.config):
        print(f"Config not found: {args.config}")
        return None
    try:
        config = ModelConfig.from_toml(args.config)
    except ValueError as e:
        print(f"Invalid config {args.config}: {e}")
        return None

    level = "DEBUG" if args.verbose else config.logging.level
    configure_logging(level=level, format=config.logging.format, output=config.logging.output)

    try:
        model = ProcessModel.from_config(config)
    except ConfigurationError as e:
        print(f"Model assembly failed: {e}")
        for issue in e.issues:
            print(f"  - {issue}")
        return None
    return config, model


def cmd_validate(args: argparse.Namespace) -> int:
    """Assemble and initialize every process in a config."""
    loaded = _load_model(args)
    if loaded is None:
        return 1
    config, model = loaded

    print(f"OK: {len(model)} processes, {model.registry.n_state_vars} state variables")
    print(f"  timestep: {config.options.timestep} d")
    print(f"  suppress_competitive_et: {config.options.suppress_competitive_et}")
    for i, process in enumerate(model):
        links = ", ".join(
            f"{model.registry.compartment(c.from_index)} -> {model.registry.compartment(c.to_index)}"
            for c in process.connections
        )
        print(f"  [{i}] {process.name}: {links}")
    return 0


def cmd_params(args: argparse.Namespace) -> int:
    """Print required parameters and state variables of a config."""
    loaded = _load_model(args)
    if loaded is None:
        return 1
    _, model = loaded

    print("Parameters:")
    params = model.required_parameters()
    if not params:
        print("  (none)")
    for p in params:
        print(f"  {p.name:<20} {p.param_class.value:<12} [{param_units(p.name)}]")

    print("State variables:")
    for i, comp in enumerate(model.registry):
        print(f"  {i:>3} {str(comp):<20} [{state_units(comp.sv_type)}]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hydroflux",
        description="hydroflux CLI: assemble and check process models",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--version", action="store_true", help="Print version and exit")
    sub = p.add_subparsers(dest="command")

    def add_common(sp):
        sp.add_argument("config", help="Path to model TOML")
        sp.add_argument(
            "--verbose", action="store_true", help="Log at DEBUG regardless of config"
        )

    pv = sub.add_parser(
        "validate",
        help="Assemble the model and report connectivity",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_common(pv)
    pv.set_defaults(func=cmd_validate)

    pp = sub.add_parser(
        "params",
        help="List parameters and state variables the model requires",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_common(pp)
    pp.set_defaults(func=cmd_params)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "version", False):
        from hydroflux import __version__

        print(__version__)
        return 0
    if getattr(args, "func", None) is None:
        parser.print_help()
        return 2
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
