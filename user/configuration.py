from utils.binning import AxisType

# ==============================================================================
#  General Configuration
# ==============================================================================

general_config = {
    "analysis": "all",
    "output_dir": "outputs/minbias/",
    "max_files": -1,
    "step_size": 100_000,
    "save_root": True,
    "save_pickle": True,
    "run_plots": False,
    "random_seed": 42,
}

# ==============================================================================
#  Datasets
# ==============================================================================

datasets_config = [
    {
        "name": "pp13TeV_data",
        "files": ["./data/pp13TeV/*.root"],
        "tree_name": "Events",
        "is_mc": False,
    },
    {
        "name": "pp13TeV_pythia8",
        "files": ["./data/pp13TeV_pythia8/*.root"],
        "tree_name": "Events",
        "is_mc": True,
    },
]

# ==============================================================================
#  Multiplicity distributions (KNO)
# ==============================================================================

kno_config = {
    "eta_cut": 0.8,
    "pt_min": 0.15,
    "lead_pt_min": 5.0,
    "lead_pt_max": 40.0,
    "vertex_z_max": 10.0,
    "use_mc": False,
    "mc_closure": False,
    "closure_fraction": 0.5,
    "is_pPb": False,
}

# ==============================================================================
#  Central diffractive two-track events
# ==============================================================================

cdmeson_config = {
    "check_central_activity": True,
    "vertex_z_max": 10.0,
    "vertex_z_in_range": 4.0,
    "vertex_coincidence": 0.5,
    "run_range": None,
    "gap_conditions": ["V0", "V0-FMD", "V0-FMD-SPD", "V0-FMD-SPD-TPC"],
    "vzero_studies": False,
}

# ==============================================================================
#  Resonances
# ==============================================================================

KAON_MASS = 0.493677
PION_MASS = 0.13957

resonance_config = {
    "pair_defs": [
        {
            "name": "phi_KpKm",
            "mass1": KAON_MASS,
            "mass2": KAON_MASS,
            "charge1": 1,
            "charge2": -1,
            "mother_pdg": 333,
        },
        {
            "name": "kstar_KpPim",
            "mass1": KAON_MASS,
            "mass2": PION_MASS,
            "charge1": 1,
            "charge2": -1,
            "mother_pdg": 313,
        },
        {
            "name": "phi_KpKp",
            "mass1": KAON_MASS,
            "mass2": KAON_MASS,
            "charge1": 1,
            "charge2": 1,
        },
    ],
    "functions": [
        {
            "pair_def": "phi_KpKm",
            "axes": [
                {"type": AxisType.PAIR_INV_MASS, "binning": "0.98,1.1,120"},
                {"type": AxisType.PAIR_PT, "binning": [0.0, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0]},
            ],
        },
        {
            "pair_def": "phi_KpKm",
            "mixing": True,
            "axes": [
                {"type": AxisType.PAIR_INV_MASS, "binning": "0.98,1.1,120"},
                {"type": AxisType.PAIR_PT, "binning": [0.0, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0]},
            ],
        },
        {
            "pair_def": "phi_KpKp",
            "axes": [
                {"type": AxisType.PAIR_INV_MASS, "binning": "0.98,1.1,120"},
                {"type": AxisType.PAIR_PT, "binning": [0.0, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0]},
            ],
        },
        {
            "pair_def": "kstar_KpPim",
            "axes": [
                {"type": AxisType.PAIR_INV_MASS, "binning": "0.7,1.1,200"},
                {"type": AxisType.PAIR_Y, "binning": "-0.5,0.5,10"},
                {"type": AxisType.EVENT_MULT, "binning": "0,100,20"},
            ],
        },
    ],
}

# ==============================================================================
#  Full configuration
# ==============================================================================

config = {
    "general": general_config,
    "datasets": datasets_config,
    "kno": kno_config,
    "cdmeson": cdmeson_config,
    "resonance": resonance_config,
}
