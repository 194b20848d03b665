"""
Diversity metrics and group comparisons for phageome data.
"""

import logging

import numpy as np
import pandas as pd
from scipy import stats
from skbio.diversity import beta_diversity
from statsmodels.stats.multitest import multipletests

from .errors import EmptySampleError, KeyMismatchError
from .phageome_sets import group_samples_by_individual
from .phageome_utils import BLOOD, FECES, parse_sample_id

logger = logging.getLogger(__name__)


def shannon_index(proportions):
    """
    Shannon diversity H = -sum(p * ln(p)) of one sample.

    Proportions equal to zero contribute nothing to the sum.

    Parameters:
    -----------
    proportions : array-like
        Non-negative relative abundances of one sample

    Returns:
    --------
    float
        Shannon index (natural logarithm)
    """
    values = np.asarray(proportions, dtype=float)
    if (values < 0).any():
        raise ValueError("Proportions must be non-negative")
    if values.sum() <= 0:
        raise EmptySampleError("Cannot compute Shannon diversity of an empty sample")

    # scipy's entropy uses the 0 * ln(0) == 0 convention
    return float(stats.entropy(values))


def calculate_alpha_diversity(proportions_df, metadata_df):
    """
    Calculate alpha diversity for each sample.

    Parameters:
    -----------
    proportions_df : pandas.DataFrame
        Relative abundances with taxa as index, samples as columns
    metadata_df : pandas.DataFrame
        Metadata with samples as index

    Returns:
    --------
    pandas.DataFrame
        Shannon, Observed, Individual, Disease and SampleType per sample
    """
    samples = list(proportions_df.columns)
    missing = [s for s in samples if s not in metadata_df.index]
    if missing:
        raise KeyMismatchError(f"Samples without metadata: {missing}", identifiers=missing)

    alpha_div = pd.DataFrame(index=pd.Index(samples, name='SampleID'))
    alpha_div['Shannon'] = [shannon_index(proportions_df[s].values) for s in samples]
    alpha_div['Observed'] = (proportions_df > 0).sum().astype(int).values
    alpha_div['Individual'] = [parse_sample_id(s)[0] for s in samples]
    alpha_div['Disease'] = metadata_df.loc[samples, 'Disease'].values
    alpha_div['SampleType'] = metadata_df.loc[samples, 'SampleType'].values

    return alpha_div


def compare_groups(df, value_col, group_col, order=None, label=None):
    """
    Compare a value between two groups with a two-sided Mann-Whitney U test.

    Parameters:
    -----------
    df : pandas.DataFrame
        Table holding the value and grouping columns
    value_col : str
        Column to compare
    group_col : str
        Grouping column
    order : list, optional
        The two groups to compare, in order (default: sorted unique values)
    label : str, optional
        Name of the comparison (default: value_col)

    Returns:
    --------
    dict
        Test results; 'P-value' is None when the test cannot be performed
    """
    if order is None:
        order = sorted(df[group_col].dropna().unique())
    if len(order) != 2:
        raise ValueError(f"Exactly two groups are required, got {list(order)}")

    values1 = df.loc[df[group_col] == order[0], value_col].dropna()
    values2 = df.loc[df[group_col] == order[1], value_col].dropna()

    result = {
        'Comparison': label or value_col,
        'Group1': order[0],
        'Group2': order[1],
        'N1': len(values1),
        'N2': len(values2),
        'Median1': values1.median() if len(values1) else np.nan,
        'Median2': values2.median() if len(values2) else np.nan,
        'Test': 'Mann-Whitney U',
        'Statistic': np.nan,
        'P-value': None,
        'Note': 'Successful test'
    }

    if len(values1) == 0 or len(values2) == 0:
        result['Note'] = 'Insufficient samples in at least one group'
        return result

    try:
        stat, p_value = stats.mannwhitneyu(values1, values2, alternative='two-sided')
    except ValueError as e:
        result['Note'] = f'Error: {str(e)}'
        return result

    result['Statistic'] = float(stat)
    result['P-value'] = float(p_value)
    return result


def adjust_pvalues(results_df, method='fdr_bh'):
    """
    Add multiple-testing corrected p-values.

    Parameters:
    -----------
    results_df : pandas.DataFrame
        Table with a 'P-value' column; missing p-values are left out of the correction
    method : str
        statsmodels multipletests method

    Returns:
    --------
    pandas.DataFrame
        Copy of the table with an 'Adjusted P-value' column
    """
    results_df = results_df.copy()
    p_values = pd.to_numeric(results_df['P-value'], errors='coerce')
    adjusted = pd.Series(np.nan, index=results_df.index)

    valid = p_values.notna()
    if valid.any():
        adjusted[valid] = multipletests(p_values[valid].values, method=method)[1]

    results_df['Adjusted P-value'] = adjusted
    return results_df


def paired_dissimilarity(proportions_df, metadata_df, metric='braycurtis'):
    """
    Beta diversity between the stool and blood sample of each individual.

    Parameters:
    -----------
    proportions_df : pandas.DataFrame
        Relative abundances with taxa as index, samples as columns
    metadata_df : pandas.DataFrame
        Metadata with samples as index
    metric : str
        Any scikit-bio beta diversity metric

    Returns:
    --------
    pandas.DataFrame
        FecesSample, BloodSample, Dissimilarity and Disease per individual
    """
    pairs = {
        individual: compartments
        for individual, compartments in group_samples_by_individual(proportions_df.columns).items()
        if FECES in compartments and BLOOD in compartments
    }
    columns = ['FecesSample', 'BloodSample', 'Dissimilarity', 'Disease']
    if not pairs:
        return pd.DataFrame(columns=columns, index=pd.Index([], name='Individual'))

    samples = [s for compartments in pairs.values() for s in (compartments[FECES], compartments[BLOOD])]
    distance_matrix = beta_diversity(metric, proportions_df[samples].T.values, ids=samples, validate=False)

    records = {}
    for individual, compartments in pairs.items():
        feces_sample = compartments[FECES]
        blood_sample = compartments[BLOOD]
        records[individual] = {
            'FecesSample': feces_sample,
            'BloodSample': blood_sample,
            'Dissimilarity': distance_matrix[feces_sample, blood_sample],
            'Disease': metadata_df.loc[feces_sample, 'Disease']
        }

    result = pd.DataFrame.from_dict(records, orient='index', columns=columns)
    result.index.name = 'Individual'
    logger.info(f"Computed {metric} dissimilarity for {len(result)} stool/blood pairs")
    return result
