#!/usr/bin/env python3

"""
Minimum-bias and diffractive event analysis driver.

Reads every configured dataset once and runs the selected tasks on each batch:
multiplicity distributions (KNO), central diffractive two-track events and
resonance pair functions. Settings of the ``general``, ``kno`` and ``cdmeson``
sections can be overridden from the command line in dot-list form, e.g.

    python analysis.py general.max_files=2 kno.pt_min=0.5
"""
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from analysis.base import AnalysisTask, run_tasks
from analysis.cdmeson import CDMesonTask
from analysis.kno import KnoTask
from analysis.resonance import ResonanceTask
from user.configuration import config as MinBiasConfig
from utils.input_files import iterate_events, log_dataset_summary
from utils.logging import _banner, setup_logging
from utils.output_files import save_histograms_to_pickle, save_histograms_to_root
from utils.plot import plot_kno_distributions, plot_phi_by_region, plot_projection, plot_stats_flow
from utils.schema import Config, DatasetConfig, load_config_with_restricted_cli

# -----------------------------
# Logging Configuration
# -----------------------------
setup_logging(logging.INFO)
logger = logging.getLogger("AnalysisDriver")


def build_tasks(config: Config, dataset: DatasetConfig) -> List[AnalysisTask]:
    """Instantiate the tasks requested in ``general.analysis`` for one dataset."""
    mode = config.general.analysis
    seed = config.general.random_seed
    tasks: List[AnalysisTask] = []

    if mode in ("kno", "all"):
        # generated-level histograms only exist for simulated datasets
        kno = config.kno.model_copy(
            update={
                "use_mc": dataset.is_mc,
                "mc_closure": config.kno.mc_closure and dataset.is_mc,
            }
        )
        tasks.append(KnoTask(kno, seed=seed))
    if mode in ("cdmeson", "all"):
        tasks.append(CDMesonTask(config.cdmeson, seed=seed))
    if mode in ("resonance", "all") and config.resonance is not None:
        tasks.append(ResonanceTask(config.resonance, seed=seed))
    return tasks


def draw_summary(outputs: Dict[str, Dict[str, Any]], plot_dir: Path) -> None:
    """Summary figures of the tasks that ran on one dataset."""
    kno = outputs.get("KnoTask")
    if kno is not None:
        plot_kno_distributions(kno, plot_dir / "kno_scaling.pdf")
        for level in ("Gen", "Rec"):
            plot_phi_by_region(kno, level, plot_dir / f"phi_regions_{level.lower()}.pdf")

    cdmeson = outputs.get("CDMesonTask")
    if cdmeson is not None:
        plot_stats_flow(cdmeson["c00_statsFlow"], plot_dir / "stats_flow.pdf")
        plot_projection(cdmeson["CDMeson_Mother"], "Mass", plot_dir / "cdmeson_mass.pdf")


# -----------------------------
# Main Driver
# -----------------------------
def main():
    """
    Main driver function.
    Loads configuration and dispatches the analysis tasks over datasets.
    """
    cli_args = sys.argv[1:]
    full_config = load_config_with_restricted_cli(MinBiasConfig, cli_args)
    config = Config(**full_config)  # Pydantic validation

    log_dataset_summary(config.datasets, config.general.max_files)
    output_dir = Path(config.general.output_dir)

    for dataset in config.datasets:
        logger.info(_banner(f"Processing {dataset.name}"))
        tasks = build_tasks(config, dataset)
        if not tasks:
            logger.warning(f"No task selected for {dataset.name}")
            continue

        batches = iterate_events(
            dataset,
            step_size=config.general.step_size,
            max_files=config.general.max_files,
        )
        outputs = run_tasks(tasks, batches)

        for task_name, output in outputs.items():
            stem = output_dir / dataset.name / task_name
            if config.general.save_pickle:
                save_histograms_to_pickle(output, stem.with_suffix(".pkl"))
            if config.general.save_root:
                save_histograms_to_root(output, stem.with_suffix(".root"))

        if config.general.run_plots:
            draw_summary(outputs, output_dir / dataset.name / "plots")

    logger.info(_banner("Analysis complete"))


if __name__ == "__main__":
    main()
