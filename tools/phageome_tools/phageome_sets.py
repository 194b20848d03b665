"""
Presence/absence sets of vOTUs per individual and compartment, and
frequency tables of their annotations.
"""

import logging
from dataclasses import dataclass

import pandas as pd

from .errors import KeyMismatchError, SchemaError
from .phageome_utils import BLOOD, FECES, parse_sample_id

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ['Individual', 'FecesSample', 'BloodSample', 'FecesCount', 'BloodCount',
                   'SharedCount', 'PercentOfFeces', 'PercentOfBlood', 'Disease']


@dataclass(frozen=True)
class IndividualPresence:
    """vOTUs detected in the stool and blood sample of one individual."""
    feces: frozenset
    blood: frozenset

    @property
    def shared(self):
        return self.feces & self.blood


@dataclass(frozen=True)
class OverlapResult:
    """
    Result of the per-individual reconciliation.

    presence : dict mapping individual ID to IndividualPresence
    summary : DataFrame indexed by individual with counts, overlap
        percentages and disease status
    """
    presence: dict
    summary: pd.DataFrame


def presence_set(proportions_df, sample):
    """Return the vOTUs with a strictly positive proportion in a sample."""
    column = proportions_df[sample]
    return frozenset(proportions_df.index[column > 0])


def overlap_percent(shared, total):
    """
    Percentage of a compartment's vOTUs that are shared.

    An empty compartment (total == 0) has no overlap and gives 0.0.
    """
    if total == 0:
        return 0.0
    return shared / total * 100


def group_samples_by_individual(samples):
    """
    Map each individual to its samples per compartment.

    Returns:
    --------
    dict
        {individual_id: {'F': sample_id, 'B': sample_id}}; compartments
        without a sample are absent
    """
    groups = {}
    for sample in samples:
        individual, compartment = parse_sample_id(sample)
        groups.setdefault(individual, {})[compartment] = sample
    return groups


def _individual_disease(metadata_df, feces_sample, blood_sample):
    feces_disease = metadata_df.loc[feces_sample, 'Disease']
    blood_disease = metadata_df.loc[blood_sample, 'Disease']
    if feces_disease != blood_disease:
        logger.warning(
            f"Disease differs between {feces_sample} ({feces_disease}) and "
            f"{blood_sample} ({blood_disease}); using the stool sample value"
        )
    return feces_disease


def reconcile_individuals(proportions_df, metadata_df):
    """
    Compare the vOTUs detected in the stool and blood sample of each individual.

    Parameters:
    -----------
    proportions_df : pandas.DataFrame
        Relative abundances with taxa as index, samples as columns. Only
        individuals with both a stool and a blood column are reported.
    metadata_df : pandas.DataFrame
        Metadata with samples as index and a Disease column

    Returns:
    --------
    OverlapResult
        Per-individual presence sets and summary table
    """
    missing = [s for s in proportions_df.columns if s not in metadata_df.index]
    if missing:
        raise KeyMismatchError(f"Samples without metadata: {missing}", identifiers=missing)

    presence = {}
    records = []

    for individual, compartments in group_samples_by_individual(proportions_df.columns).items():
        if FECES not in compartments or BLOOD not in compartments:
            logger.warning(f"Skipping individual {individual}: only {list(compartments.values())} present")
            continue

        feces_sample = compartments[FECES]
        blood_sample = compartments[BLOOD]
        individual_presence = IndividualPresence(
            feces=presence_set(proportions_df, feces_sample),
            blood=presence_set(proportions_df, blood_sample)
        )
        presence[individual] = individual_presence

        n_feces = len(individual_presence.feces)
        n_blood = len(individual_presence.blood)
        n_shared = len(individual_presence.shared)

        records.append({
            'Individual': individual,
            'FecesSample': feces_sample,
            'BloodSample': blood_sample,
            'FecesCount': n_feces,
            'BloodCount': n_blood,
            'SharedCount': n_shared,
            'PercentOfFeces': overlap_percent(n_shared, n_feces),
            'PercentOfBlood': overlap_percent(n_shared, n_blood),
            'Disease': _individual_disease(metadata_df, feces_sample, blood_sample)
        })

    summary = pd.DataFrame(records, columns=SUMMARY_COLUMNS).set_index('Individual')
    logger.info(f"Reconciled stool and blood vOTUs for {len(summary)} individuals")

    return OverlapResult(presence=presence, summary=summary)


def compartment_sets(proportions_df):
    """
    Union of vOTUs detected in any stool sample and in any blood sample.

    Parameters:
    -----------
    proportions_df : pandas.DataFrame
        Relative abundances with taxa as index, samples as columns

    Returns:
    --------
    tuple
        (feces_taxa, blood_taxa) as frozensets
    """
    feces_taxa = set()
    blood_taxa = set()

    for sample in proportions_df.columns:
        _, compartment = parse_sample_id(sample)
        if compartment == FECES:
            feces_taxa |= presence_set(proportions_df, sample)
        else:
            blood_taxa |= presence_set(proportions_df, sample)

    return frozenset(feces_taxa), frozenset(blood_taxa)


def aggregate_annotation(taxa, taxonomy_df, column, categories,
                         missing_label='Unknown', other_label=None):
    """
    Count vOTUs per annotation category.

    Parameters:
    -----------
    taxa : iterable
        vOTU identifiers
    taxonomy_df : pandas.DataFrame
        Taxonomy table with vOTUs as index
    column : str
        Annotation column to count, e.g. 'HostPhylum'
    categories : list
        Fixed, ordered category set of the output
    missing_label : str
        Category receiving missing annotations
    other_label : str, optional
        Category receiving annotations outside ``categories``; when None
        they are counted under ``missing_label``

    Returns:
    --------
    pandas.Series
        Counts indexed by exactly ``categories``, zero counts included
    """
    categories = list(categories)
    if missing_label not in categories:
        raise ValueError(f"Missing-value label '{missing_label}' is not one of {categories}")
    if other_label is not None and other_label not in categories:
        raise ValueError(f"Other label '{other_label}' is not one of {categories}")
    if column not in taxonomy_df.columns:
        raise SchemaError(f"Taxonomy table has no column '{column}'", columns=[column])

    taxa = sorted(set(taxa))
    unknown = [t for t in taxa if t not in taxonomy_df.index]
    if unknown:
        raise KeyMismatchError(f"vOTUs without taxonomy: {unknown[:10]}", identifiers=unknown)

    def to_category(value):
        if pd.isna(value):
            return missing_label
        if value in categories:
            return value
        return other_label if other_label is not None else missing_label

    labels = pd.Series([to_category(v) for v in taxonomy_df.loc[taxa, column]], dtype=object)
    frequencies = labels.value_counts().reindex(categories, fill_value=0).astype(int)
    frequencies.index.name = column
    frequencies.name = 'Count'

    return frequencies
