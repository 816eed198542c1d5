from . import base as base
from . import cdmeson as cdmeson
from . import function as function
from . import kno as kno
from . import resonance as resonance


__all__ = [
    "base",
    "cdmeson",
    "function",
    "kno",
    "resonance",
]


def __dir__():
    return __all__
