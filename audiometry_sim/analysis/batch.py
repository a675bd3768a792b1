"""Batch generation and summary statistics of generated cases."""
import logging

import numpy as np
import pandas as pd
from scipy.stats import pearsonr
from tqdm import tqdm

from ..simulation.case import Ear
from ..simulation.case_generator import GenerateOptions, four_frequency_pta, generate_case

logger = logging.getLogger(__name__)


def generate_batch(n_cases, seed=0, config=None, progress=False, **options):
    """
    Generate ``n_cases`` cases with consecutive seeds.

    Args:
        n_cases (int): Number of cases
        seed (int): Seed of the first case
        config (EngineConfig, optional): Engine configuration
        progress (bool): Show a tqdm progress bar
        **options: Fixed GenerateOptions fields (profile, sex, ...)

    Returns:
        list: Generated cases
    """
    if n_cases < 0:
        raise ValueError("n_cases must be non-negative")
    seeds = range(seed, seed + n_cases)
    iterator = tqdm(seeds, desc="Generating cases", disable=not progress)
    cases = [generate_case(GenerateOptions(seed=s, **options), config) for s in iterator]
    logger.info("Generated %d cases starting at seed %d", len(cases), seed)
    return cases


def cases_to_dataframe(cases):
    """Long-format table: one row per case, ear and frequency."""
    records = []
    for case in cases:
        meta = case.meta
        for ear in (Ear.RIGHT, Ear.LEFT):
            for row in case.rows(ear):
                records.append({
                    'case_id': case.case_id,
                    'seed': meta.seed,
                    'profile': meta.profile,
                    'severity': meta.severity,
                    'sex': meta.sex,
                    'age_group': meta.age_group,
                    'ear': ear.value,
                    'ear_profile': meta.ear_profile(ear),
                    'tympanogram': case.tympanogram.ear(ear).type,
                    'freq': row.freq,
                    'ac': row.ac,
                    'bc': row.bc,
                    'so_ac': row.so_ac,
                    'so_bc': row.so_bc,
                })
    return pd.DataFrame.from_records(records)


def summarize_batch(cases):
    """
    Per-profile summary of a batch.

    Returns:
        pd.DataFrame: indexed by profile with case count, mean severity,
        scale-out counts and mean four-frequency PTA per ear
    """
    records = []
    for case in cases:
        records.append({
            'profile': case.meta.profile,
            'severity': case.meta.severity,
            'so_ac': sum(r.so_ac for r in case.right + case.left),
            'so_bc': sum(r.so_bc for r in case.right + case.left),
            'pta_right': four_frequency_pta(case.right),
            'pta_left': four_frequency_pta(case.left),
        })
    if not records:
        return pd.DataFrame(columns=['n_cases', 'mean_severity', 'so_ac', 'so_bc',
                                     'pta_right', 'pta_left'])
    df = pd.DataFrame.from_records(records)
    summary = df.groupby('profile').agg(
        n_cases=('severity', 'size'),
        mean_severity=('severity', 'mean'),
        so_ac=('so_ac', 'sum'),
        so_bc=('so_bc', 'sum'),
        pta_right=('pta_right', 'mean'),
        pta_left=('pta_left', 'mean'),
    )
    return summary


def interaural_correlation(cases):
    """
    Pearson correlation of right and left AC over bilateral cases.

    Returns:
        tuple: (r, p_value), NaNs when fewer than three paired values exist
    """
    right, left = [], []
    for case in cases:
        if case.meta.affected_side is not None:
            continue
        for r_row, l_row in zip(case.right, case.left):
            right.append(r_row.ac)
            left.append(l_row.ac)
    if len(right) < 3 or np.std(right) == 0 or np.std(left) == 0:
        return float('nan'), float('nan')
    result = pearsonr(right, left)
    return float(result[0]), float(result[1])
