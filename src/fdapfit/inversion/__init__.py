from .bromwich import (
    InversionConfig,
    DEFAULT_INVERSION,
    LaplaceInverter,
    invert_laplace,
    invert_transform,
)
