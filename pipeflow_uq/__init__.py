"""
pipeflow_uq

Pressure drop of laminar pipe flow (Poiseuille's law) with uncertain inputs,
propagated by Monte Carlo ensembles.

Public entry point:
- `python -m pipeflow_uq.run [--config path/to/config.yaml]`
"""

from .ensemble import DistributedValue, divide, mean, multiply, power, sample_one, scale
from .engine import sample, sample_lognormal, sample_uniform
from .errors import DivisionDomainError, InvalidParameterError, InvalidRangeError, PipeflowError
from .physics import Fluid, Pipe, compute_pressure_drop, point_estimate_pressure_drop

__all__ = [
    "__version__",
    "DistributedValue",
    "multiply",
    "divide",
    "power",
    "scale",
    "mean",
    "sample_one",
    "sample",
    "sample_uniform",
    "sample_lognormal",
    "PipeflowError",
    "InvalidRangeError",
    "InvalidParameterError",
    "DivisionDomainError",
    "Fluid",
    "Pipe",
    "compute_pressure_drop",
    "point_estimate_pressure_drop",
]
__version__ = "0.1.0"
