"""
hydroflux: flux accounting for land-surface hydrology processes.

Computes and constrains the mass transfers between storage compartments
of a semi-distributed hydrological model for one timestep at a time:
canopy evaporation, canopy snow sublimation, canopy drip and advective
constituent transport, competing for a shared evapotranspiration budget.

Subpackages:
    process: Process abstraction, canopy and transport processes, kernels.
    config: TOML configuration for assembling a process model.

Example:
    >>> from hydroflux.config import ModelConfig
    >>> from hydroflux.process import ProcessModel, run_loop
    >>>
    >>> config = ModelConfig.from_toml("model.toml")
    >>> model = ProcessModel.from_config(config)
    >>> state = model.registry.zeros()
    >>> output, final = run_loop(model, state, hru, forcings, config.options)
"""

__version__ = "0.1.0"
