"""
Error Types

Exceptions raised by models, value representations and solvers.
"""


class InvalidConfigurationError(ValueError):
    """Raised when a component is constructed with invalid parameters"""

    pass


class InvalidObservationError(ValueError):
    """Raised when an observed transition cannot be recorded"""

    pass


class TimestepOutOfRangeError(IndexError):
    """Raised when a finite-horizon object is queried outside its horizon"""

    def __init__(self, timestep: int, horizon: int):
        super().__init__(
            f"Invalid timestep {timestep}. Valid timesteps are integers in "
            f"[0, {horizon - 1}]."
        )
        self.timestep = timestep
        self.horizon = horizon
