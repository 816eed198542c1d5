from . import binning as binning
from . import cuts as cuts
from . import gaps as gaps
from . import histograms as histograms
from . import input_files as input_files
from . import kinematics as kinematics
from . import logging as logging
from . import output_files as output_files
from . import schema as schema

__all__ = [
    "binning",
    "cuts",
    "gaps",
    "histograms",
    "input_files",
    "kinematics",
    "logging",
    "output_files",
    "plot",
    "schema",
]


def __dir__():
    return __all__
