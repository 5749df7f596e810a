#########################################################################################
##
##                                 EXCEPTION CLASSES
##                                    (errors.py)
##
#########################################################################################


class FDAPError(Exception):
    """Base class for all errors raised by fdapfit."""


class ConfigurationError(FDAPError, ValueError):
    """Unknown or unsupported model regime / derivative selector combination.

    Raised before any numerical evaluation takes place.
    """


class NumericalDegeneracy(FDAPError, ArithmeticError):
    """The model is undefined for the requested parameters.

    Typical causes are ``koff`` collapsing towards zero (the transfer functions
    divide by ``koff`` and ``s + koff``) or a singular normal matrix. The
    solver converts this into a ``NUMERICAL_FAILURE`` status.
    """
