"""Exception types raised by primreg."""


class PrimregError(Exception):
    """Base class for recoverable primreg failures."""


class NoInliersError(PrimregError):
    """No point lies within the distance threshold of a primitive."""

    def __init__(self, primitive, threshold):
        self.primitive = primitive
        self.threshold = threshold
        super().__init__(f"no inliers within {threshold:g} of primitive gid={primitive.gid}")


class InputValidationError(ValueError):
    """One or more input files are missing or unreadable."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Input validation failed: {self.errors}")
