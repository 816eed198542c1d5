"""
Pydantic schemas for validating the analysis configuration.

This module defines the models that correspond to the structure of the main
analysis configuration dictionary (see ``user.configuration``). Validation
happens once, before any event is processed, so a malformed configuration
fails early with a clear message.
"""

import copy
from typing import Annotated, List, Literal, Optional, Tuple, Union

from omegaconf import OmegaConf, DictConfig
from pydantic import BaseModel, Field, model_validator

from utils.binning import AxisType


class SubscriptableModel(BaseModel):
    """A Pydantic BaseModel that supports dictionary-style item access."""

    def __getitem__(self, key):
        """Allows dictionary-style `model[key]` access."""
        return getattr(self, key)

    def __setitem__(self, key, value):
        """Allows dictionary-style `model[key] = value` assignment."""
        return setattr(self, key, value)

    def __contains__(self, key):
        """Allows `key in model` checks."""
        return hasattr(self, key)

    def get(self, key, default=None):
        """Allows `.get(key, default)` method."""
        return getattr(self, key, default)


def parse_binning(binning: Union[str, List[float]]) -> Union[Tuple[int, float, float], List[float]]:
    """
    Parse a 'low,high,nbins' string into ``(nbins, low, high)``; lists of
    explicit edges are returned unchanged.
    """
    if isinstance(binning, str):
        low, high, nbins = map(float, binning.split(","))
        return int(nbins), low, high
    return list(binning)


def _validate_binning(binning: Union[str, List[float]], owner: str) -> None:
    if isinstance(binning, str):
        try:
            nbins, low, high = parse_binning(binning)
        except ValueError:
            raise ValueError(
                f"{owner}: binning string '{binning}' must be 'low,high,nbins'."
            )
        if nbins <= 0 or high <= low:
            raise ValueError(f"{owner}: invalid binning '{binning}'.")
    else:
        if len(binning) < 2 or any(b >= a for a, b in zip(binning[1:], binning[:-1])):
            raise ValueError(
                f"{owner}: explicit bin edges must be strictly increasing."
            )


# ------------------------
# General configuration
# ------------------------
class GeneralConfig(SubscriptableModel):
    analysis: Annotated[
        Literal["kno", "cdmeson", "resonance", "all"],
        Field(
            default="all",
            description="Which task(s) to run: 'kno', 'cdmeson', 'resonance' or 'all'.",
        ),
    ]
    output_dir: Annotated[
        str,
        Field(default="output/", description="Root directory for all analysis outputs."),
    ]
    max_files: Annotated[
        int,
        Field(
            default=-1,
            description="Maximum number of files to process per dataset. "
            "Use -1 for no limit.",
        ),
    ]
    step_size: Annotated[
        int,
        Field(default=100_000, description="Number of events read per batch."),
    ]
    save_root: Annotated[
        bool,
        Field(default=True, description="If True, write histograms to a ROOT file."),
    ]
    save_pickle: Annotated[
        bool,
        Field(default=True, description="If True, pickle the full output container."),
    ]
    run_plots: Annotated[
        bool,
        Field(default=False, description="If True, draw summary figures per dataset."),
    ]
    random_seed: Annotated[
        int,
        Field(
            default=42,
            description="Seed for the random choices (daughter selection, "
            "closure-test sample splitting).",
        ),
    ]

    @model_validator(mode="after")
    def validate_general(self) -> "GeneralConfig":
        """Validate the general configuration settings."""
        if self.max_files < -1:
            raise ValueError(
                f"max_files must be -1 or non-negative; got {self.max_files}."
            )
        if self.step_size <= 0:
            raise ValueError(f"step_size must be positive; got {self.step_size}.")
        return self


# ------------------------
# Dataset configuration
# ------------------------
class DatasetConfig(SubscriptableModel):
    """Input files of one dataset."""

    name: Annotated[str, Field(description="Dataset name/identifier")]
    files: Annotated[List[str], Field(description="ROOT files (glob patterns allowed)")]
    tree_name: Annotated[str, Field(default="Events", description="ROOT tree name")]
    is_mc: Annotated[
        bool, Field(default=False, description="True for simulated datasets")
    ]


# ------------------------
# KNO configuration
# ------------------------
class KnoConfig(SubscriptableModel):
    eta_cut: Annotated[
        float, Field(default=0.8, description="Maximum |eta| of counted particles.")
    ]
    pt_min: Annotated[
        float, Field(default=0.15, description="Minimum pT of counted particles in GeV/c.")
    ]
    lead_pt_min: Annotated[
        float, Field(default=5.0, description="Lower edge of the leading-pT window.")
    ]
    lead_pt_max: Annotated[
        float, Field(default=40.0, description="Upper edge of the leading-pT window.")
    ]
    vertex_z_max: Annotated[
        float, Field(default=10.0, description="Maximum |z| of the primary vertex in cm.")
    ]
    use_mc: Annotated[
        bool,
        Field(
            default=False,
            description="Analyse simulated events (generated and reconstructed).",
        ),
    ]
    mc_closure: Annotated[
        bool,
        Field(
            default=False,
            description="Split simulated events into a test half and a "
            "correction half.",
        ),
    ]
    closure_fraction: Annotated[
        float,
        Field(
            default=0.5,
            description="Fraction of events assigned to the closure-test half.",
        ),
    ]
    is_pPb: Annotated[
        bool,
        Field(
            default=False,
            description="p-Pb collisions: use the V0A percentile as estimator.",
        ),
    ]

    @model_validator(mode="after")
    def validate_kno(self) -> "KnoConfig":
        if self.lead_pt_max <= self.lead_pt_min:
            raise ValueError(
                f"Leading-pT window [{self.lead_pt_min}, {self.lead_pt_max}) is empty."
            )
        if not 0.0 < self.closure_fraction < 1.0:
            raise ValueError("closure_fraction must lie in (0, 1).")
        if self.mc_closure and not self.use_mc:
            raise ValueError("mc_closure requires use_mc.")
        return self


# ------------------------
# CD meson configuration
# ------------------------
class CDMesonConfig(SubscriptableModel):
    check_central_activity: Annotated[
        bool,
        Field(
            default=True,
            description="Require central activity for a double-gap classification.",
        ),
    ]
    vertex_z_max: Annotated[
        float, Field(default=10.0, description="Maximum |z| of the primary vertex in cm.")
    ]
    vertex_z_in_range: Annotated[
        float,
        Field(default=4.0, description="|z| in cm below which 'VertexZinRng' is set."),
    ]
    vertex_coincidence: Annotated[
        float,
        Field(
            default=0.5,
            description="SPD-track vertex distance in cm below which "
            "'VertexCoincidence' is set.",
        ),
    ]
    run_range: Annotated[
        Optional[Tuple[int, int]],
        Field(
            default=None,
            description="If given, (first, last) run of the gap-run histogram.",
        ),
    ]
    gap_conditions: Annotated[
        List[str],
        Field(
            default_factory=lambda: ["V0", "V0-FMD", "V0-FMD-SPD", "V0-FMD-SPD-TPC"],
            description="Detector combinations summarised per run at terminate.",
        ),
    ]
    vzero_studies: Annotated[
        bool,
        Field(default=False, description="Book the VZERO ADC study histograms."),
    ]

    @model_validator(mode="after")
    def validate_run_range(self) -> "CDMesonConfig":
        if self.run_range is not None and self.run_range[1] < self.run_range[0]:
            raise ValueError(f"Invalid run range {self.run_range}.")
        return self


# ------------------------
# Resonance configuration
# ------------------------
class PairDefConfig(SubscriptableModel):
    name: Annotated[str, Field(description="Pair definition name, e.g. 'phi'")]
    mass1: Annotated[float, Field(description="Mass hypothesis of daughter 1 in GeV/c^2")]
    mass2: Annotated[float, Field(description="Mass hypothesis of daughter 2 in GeV/c^2")]
    charge1: Annotated[int, Field(description="Charge of daughter 1")]
    charge2: Annotated[int, Field(description="Charge of daughter 2")]
    mother_pdg: Annotated[
        int, Field(default=0, description="PDG code of the mother for true pairs")
    ]


class FunctionAxisConfig(SubscriptableModel):
    type: Annotated[AxisType, Field(description="Observable on this axis")]
    binning: Annotated[
        Union[str, List[float]],
        Field(description="'low,high,nbins' string or explicit bin edges"),
    ]

    @model_validator(mode="after")
    def validate_binning(self) -> "FunctionAxisConfig":
        _validate_binning(self.binning, f"axis {self.type.name}")
        return self


class PairFunctionConfig(SubscriptableModel):
    pair_def: Annotated[str, Field(description="Name of the pair definition used")]
    axes: Annotated[List[FunctionAxisConfig], Field(description="Histogram axes")]
    only_true: Annotated[
        bool, Field(default=False, description="Fill only true (same-mother) pairs")
    ]
    mixing: Annotated[
        bool, Field(default=False, description="Fill with mixed-event pairs")
    ]


class ResonanceConfig(SubscriptableModel):
    pair_defs: Annotated[List[PairDefConfig], Field(description="Pair definitions")]
    functions: Annotated[List[PairFunctionConfig], Field(description="Pair functions")]

    @model_validator(mode="after")
    def validate_functions(self) -> "ResonanceConfig":
        names = [pd.name for pd in self.pair_defs]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate pair definition names.")
        for function in self.functions:
            if function.pair_def not in names:
                raise ValueError(
                    f"Function refers to unknown pair definition '{function.pair_def}'."
                )
            if not function.axes:
                raise ValueError("A pair function needs at least one axis.")
        return self


# ------------------------
# Top-level configuration
# ------------------------
class Config(SubscriptableModel):
    general: Annotated[GeneralConfig, Field(description="General settings")]
    datasets: Annotated[List[DatasetConfig], Field(description="Input datasets")]
    kno: Annotated[
        KnoConfig, Field(default_factory=KnoConfig, description="Multiplicity task")
    ]
    cdmeson: Annotated[
        CDMesonConfig,
        Field(default_factory=CDMesonConfig, description="Two-track diffractive task"),
    ]
    resonance: Annotated[
        Optional[ResonanceConfig],
        Field(default=None, description="Resonance pair functions"),
    ]

    @model_validator(mode="after")
    def validate_config(self) -> "Config":
        names = [dataset.name for dataset in self.datasets]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate dataset names.")
        if self.general.analysis == "resonance" and self.resonance is None:
            raise ValueError("analysis='resonance' requires a 'resonance' section.")
        return self


def load_config_with_restricted_cli(
    base_cfg: dict, cli_args: list[str]
) -> dict:
    """
    Load base config and override keys via CLI arguments in dotlist form.
    Raises error for non-existent keys.

    Parameters
    ----------
    base_cfg : dict
        The full Python config.
    cli_args : list of str
        CLI args in OmegaConf dotlist format (e.g. kno.pt_min=0.5)

    Returns
    -------
    dict
        Full merged config (with overrides applied to the allowed sections).

    Raises
    ------
    ValueError
        If an argument is malformed or targets a disallowed section
    KeyError
        If attempting to override a non-existent setting
    """
    ALLOWED_CLI_TOPLEVEL_KEYS = {"general", "kno", "cdmeson"}

    # Deep copy so the base configuration stays untouched
    base_copy = copy.deepcopy(base_cfg)

    safe_base = {
        k: v for k, v in base_copy.items() if k in ALLOWED_CLI_TOPLEVEL_KEYS
    }
    safe_base_oc = OmegaConf.create(safe_base, flags={"allow_objects": True})

    # Create a set of all valid keys in the safe base config
    valid_keys = set()
    for key_path in safe_base_oc.keys():
        if isinstance(safe_base_oc[key_path], DictConfig):
            for subkey in safe_base_oc[key_path].keys():
                valid_keys.add(f"{key_path}.{subkey}")
        else:
            valid_keys.add(key_path)

    filtered_cli = []
    for arg in cli_args:
        try:
            key, value = arg.split("=", 1)
        except ValueError:
            raise ValueError(
                f"Invalid CLI argument format: {arg}. Expected 'key=value'"
            )

        top_key = key.split(".", 1)[0]
        if top_key not in ALLOWED_CLI_TOPLEVEL_KEYS:
            raise ValueError(
                f"Override of top-level key `{top_key}` is not allowed. "
                f"Allowed keys: {', '.join(sorted(ALLOWED_CLI_TOPLEVEL_KEYS))}"
            )

        if key not in valid_keys:
            raise KeyError(
                f"Cannot override non-existent setting: {key}. "
                f"Valid settings in section '{top_key}': "
                f"{', '.join(sorted(k for k in valid_keys if k.startswith(top_key)))}"
            )

        filtered_cli.append(arg)

    cli_cfg = OmegaConf.from_dotlist(filtered_cli)
    merged_cfg = OmegaConf.merge(safe_base_oc, cli_cfg)
    updated_subsections = OmegaConf.to_container(merged_cfg, resolve=True)

    for k in ALLOWED_CLI_TOPLEVEL_KEYS:
        if k in updated_subsections:
            base_copy[k] = updated_subsections[k]

    return base_copy
