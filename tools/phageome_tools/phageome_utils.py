"""
Utility functions for loading, filtering and normalizing phageome tables.
"""

import logging
from dataclasses import dataclass

import pandas as pd
import yaml

from .errors import EmptySampleError, KeyMismatchError, SchemaError

logger = logging.getLogger(__name__)

# Sample identifiers are '{IndividualID}_{F|B}'
FECES = 'F'
BLOOD = 'B'
COMPARTMENTS = {FECES: 'Stool', BLOOD: 'Plasma'}

TAXONOMY_COLUMNS = ['Contaminant', 'Viral', 'Family', 'HostPhylum']
METADATA_COLUMNS = ['Disease', 'SampleType']
FLAG_VALUES = {'yes': True, 'no': False}

REQUIRED_CONFIG_SECTIONS = ['data', 'filtering', 'metadata', 'aggregation',
                            'statistics', 'visualization']


@dataclass(frozen=True)
class PhageomeData:
    """
    The three input tables, aligned on their identifiers.

    abundance : taxa x samples DataFrame
    taxonomy : taxa x annotations DataFrame (same index as abundance)
    metadata : samples x attributes DataFrame (index == abundance columns)
    """
    abundance: pd.DataFrame
    taxonomy: pd.DataFrame
    metadata: pd.DataFrame

    @property
    def samples(self):
        return list(self.abundance.columns)

    @property
    def taxa(self):
        return list(self.abundance.index)


def load_config(config_path):
    """
    Load the YAML analysis configuration.

    Parameters:
    -----------
    config_path : str or Path
        Path to the configuration file

    Returns:
    --------
    dict
        Parsed configuration
    """
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    missing = [section for section in REQUIRED_CONFIG_SECTIONS if section not in config]
    if missing:
        raise KeyError(f"Missing configuration sections in {config_path}: {missing}")

    return config


def parse_sample_id(sample_id):
    """
    Split a sample identifier into its individual ID and compartment code.

    Parameters:
    -----------
    sample_id : str
        Sample identifier such as 'P07_F'

    Returns:
    --------
    tuple
        (individual_id, compartment) with compartment in {'F', 'B'}
    """
    parts = str(sample_id).rsplit('_', 1)
    if len(parts) != 2 or not parts[0] or parts[1] not in COMPARTMENTS:
        raise SchemaError(
            f"Sample identifier '{sample_id}' does not follow the "
            f"'<individual>_<{'|'.join(COMPARTMENTS)}>' convention"
        )
    return parts[0], parts[1]


def paired_sample_id(sample_id):
    """Return the identifier of the other-compartment sample of the same individual."""
    individual, compartment = parse_sample_id(sample_id)
    other = BLOOD if compartment == FECES else FECES
    return f'{individual}_{other}'


def _check_required_columns(df, required, table_name):
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise SchemaError(f"{table_name} table is missing required columns: {missing}",
                          columns=missing)


def _check_unique_index(df, table_name):
    duplicated = df.index[df.index.duplicated()].unique().tolist()
    if duplicated:
        raise SchemaError(f"{table_name} table has duplicated identifiers: {duplicated[:10]}")


def _read_table(filepath, sep, table_name, **kwargs):
    """Read a delimited table, reporting malformed files as SchemaError."""
    try:
        return pd.read_csv(filepath, sep=sep, index_col=0, **kwargs)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise SchemaError(f"{table_name} file {filepath} could not be parsed: {e}") from e


def _check_unique_header(filepath, sep, table_name):
    # read_csv renames repeated column names ('X', 'X.1'), so inspect the raw header
    header = _read_table(filepath, sep, table_name, header=None, nrows=1, dtype=str)
    columns = pd.Series(header.iloc[0].values).astype(str)
    duplicated = columns[columns.duplicated()].unique().tolist()
    if duplicated:
        raise SchemaError(f"{table_name} table has duplicated sample identifiers: {duplicated}",
                          columns=duplicated)


def _parse_flag(series, column):
    """Convert a Yes/No column to booleans, rejecting anything else."""
    normalized = series.astype('string').str.strip().str.lower()
    parsed = normalized.map(FLAG_VALUES)
    invalid = series.index[parsed.isna()].tolist()
    if invalid:
        raise SchemaError(
            f"Column '{column}' must contain only Yes/No values; "
            f"invalid entries for {len(invalid)} taxa: {invalid[:10]}",
            columns=[column]
        )
    return parsed.astype(bool)


def load_abundance_table(filepath, sep='\t'):
    """
    Load the vOTU abundance table.

    Parameters:
    -----------
    filepath : str or Path
        Path to the abundance file (taxa as rows, samples as columns)
    sep : str
        Field delimiter

    Returns:
    --------
    pandas.DataFrame
        Numeric abundance DataFrame with taxa as index, samples as columns
    """
    _check_unique_header(filepath, sep, 'Abundance')
    abundance_df = _read_table(filepath, sep, 'Abundance')
    abundance_df.index = abundance_df.index.astype(str)
    abundance_df.columns = abundance_df.columns.astype(str)
    abundance_df.index.name = 'vOTU'

    if abundance_df.shape[0] == 0 or abundance_df.shape[1] == 0:
        raise SchemaError(
            f"Abundance table has {abundance_df.shape[0]} rows and "
            f"{abundance_df.shape[1]} columns"
        )
    _check_unique_index(abundance_df, 'Abundance')

    numeric_df = abundance_df.apply(pd.to_numeric, errors='coerce')
    bad_columns = numeric_df.columns[numeric_df.isna().any()].tolist()
    if bad_columns:
        raise SchemaError(
            f"Abundance table has missing or non-numeric counts in samples: {bad_columns}",
            columns=bad_columns
        )

    negative_columns = numeric_df.columns[(numeric_df < 0).any()].tolist()
    if negative_columns:
        raise SchemaError(
            f"Abundance table has negative counts in samples: {negative_columns}",
            columns=negative_columns
        )

    logger.info(f"Loaded abundance table: {numeric_df.shape[0]} vOTUs, {numeric_df.shape[1]} samples")
    return numeric_df


def load_taxonomy(filepath, sep=','):
    """
    Load vOTU taxonomic annotations.

    The Contaminant and Viral flags are converted to booleans. Missing
    HostPhylum values are kept as missing; aggregation decides how to count them.

    Parameters:
    -----------
    filepath : str or Path
        Path to the taxonomy file
    sep : str
        Field delimiter

    Returns:
    --------
    pandas.DataFrame
        Taxonomy DataFrame with taxa as index
    """
    taxonomy_df = _read_table(filepath, sep, 'Taxonomy', dtype=str)
    taxonomy_df.index = taxonomy_df.index.astype(str)
    taxonomy_df.index.name = 'vOTU'

    _check_required_columns(taxonomy_df, TAXONOMY_COLUMNS, 'Taxonomy')
    _check_unique_index(taxonomy_df, 'Taxonomy')

    taxonomy_df['Contaminant'] = _parse_flag(taxonomy_df['Contaminant'], 'Contaminant')
    taxonomy_df['Viral'] = _parse_flag(taxonomy_df['Viral'], 'Viral')

    for col in ['Family', 'HostPhylum']:
        taxonomy_df[col] = taxonomy_df[col].astype('string').str.strip().replace('', pd.NA)

    logger.info(f"Loaded taxonomy for {len(taxonomy_df)} vOTUs")
    return taxonomy_df


def load_metadata(filepath, sep=';', sample_types=None):
    """
    Load sample metadata.

    Parameters:
    -----------
    filepath : str or Path
        Path to the metadata file
    sep : str
        Field delimiter
    sample_types : list, optional
        Allowed SampleType values (default: Stool, Plasma)

    Returns:
    --------
    pandas.DataFrame
        Metadata DataFrame with sample IDs as index
    """
    if sample_types is None:
        sample_types = list(COMPARTMENTS.values())

    metadata_df = _read_table(filepath, sep, 'Metadata')
    metadata_df.index = metadata_df.index.astype(str)
    metadata_df.index.name = 'SampleID'

    _check_required_columns(metadata_df, METADATA_COLUMNS, 'Metadata')
    _check_unique_index(metadata_df, 'Metadata')

    missing_disease = metadata_df.index[metadata_df['Disease'].isna()].tolist()
    if missing_disease:
        raise SchemaError(f"Disease is missing for samples: {missing_disease}",
                          columns=['Disease'])
    metadata_df['Disease'] = metadata_df['Disease'].astype(str).str.strip()

    metadata_df['SampleType'] = metadata_df['SampleType'].astype(str).str.strip()
    invalid_types = metadata_df.index[~metadata_df['SampleType'].isin(sample_types)].tolist()
    if invalid_types:
        raise SchemaError(
            f"SampleType must be one of {sample_types}; invalid for samples: {invalid_types}",
            columns=['SampleType']
        )

    logger.info(f"Loaded metadata for {len(metadata_df)} samples")
    return metadata_df


def build_phageome_data(abundance_df, taxonomy_df, metadata_df):
    """
    Validate cross-table identifiers and align the three tables.

    Every sample of the abundance table needs a metadata row and every vOTU
    needs a taxonomy row. Taxonomy and metadata are restricted to the
    identifiers of the abundance table.

    Returns:
    --------
    PhageomeData
        Aligned tables
    """
    for sample_id in abundance_df.columns:
        parse_sample_id(sample_id)

    missing_samples = [s for s in abundance_df.columns if s not in metadata_df.index]
    if missing_samples:
        raise KeyMismatchError(
            f"{len(missing_samples)} samples in the abundance table have no metadata: "
            f"{missing_samples[:10]}",
            identifiers=missing_samples
        )

    missing_taxa = [t for t in abundance_df.index if t not in taxonomy_df.index]
    if missing_taxa:
        raise KeyMismatchError(
            f"{len(missing_taxa)} vOTUs in the abundance table have no taxonomy: "
            f"{missing_taxa[:10]}",
            identifiers=missing_taxa
        )

    # The _F/_B suffix and SampleType must name the same compartment
    mismatched = [
        s for s in abundance_df.columns
        if metadata_df.loc[s, 'SampleType'] != COMPARTMENTS[parse_sample_id(s)[1]]
    ]
    if mismatched:
        raise SchemaError(
            f"SampleType disagrees with the sample identifier suffix for samples: {mismatched}",
            columns=['SampleType']
        )

    return PhageomeData(
        abundance=abundance_df.copy(),
        taxonomy=taxonomy_df.loc[abundance_df.index].copy(),
        metadata=metadata_df.loc[abundance_df.columns].copy()
    )


def load_phageome_data(abundance_file, taxonomy_file, metadata_file,
                       abundance_sep='\t', taxonomy_sep=',', metadata_sep=';'):
    """
    Load and cross-validate the abundance, taxonomy and metadata tables.

    Returns:
    --------
    PhageomeData
        Aligned tables
    """
    abundance_df = load_abundance_table(abundance_file, sep=abundance_sep)
    taxonomy_df = load_taxonomy(taxonomy_file, sep=taxonomy_sep)
    metadata_df = load_metadata(metadata_file, sep=metadata_sep)

    return build_phageome_data(abundance_df, taxonomy_df, metadata_df)


def exclude_samples(samples, exclusions):
    """
    Remove configured low-depth samples.

    Parameters:
    -----------
    samples : list
        Sample identifiers
    exclusions : iterable
        Sample identifiers to exclude

    Returns:
    --------
    list
        Remaining samples, in input order
    """
    exclusions = set(exclusions or [])
    unknown = sorted(exclusions.difference(samples))
    if unknown:
        logger.warning(f"Excluded samples not present in the data: {unknown}")

    kept = [s for s in samples if s not in exclusions]
    logger.info(f"Excluded {len(samples) - len(kept)} low-depth samples, {len(kept)} remain")
    return kept


def remove_orphan_samples(samples, excluded):
    """
    Remove samples whose paired sample was excluded.

    Parameters:
    -----------
    samples : list
        Samples remaining after exclusion
    excluded : iterable
        Samples that were excluded

    Returns:
    --------
    list
        Samples whose counterpart is still present
    """
    excluded = set(excluded or [])
    kept = [s for s in samples if paired_sample_id(s) not in excluded]

    orphans = [s for s in samples if s not in kept]
    if orphans:
        logger.info(f"Removed {len(orphans)} orphan samples: {orphans}")
    return kept


def select_samples(data, samples):
    """Restrict the abundance and metadata tables to the given samples."""
    unknown = [s for s in samples if s not in data.abundance.columns]
    if unknown:
        raise KeyMismatchError(f"Unknown samples requested: {unknown}", identifiers=unknown)

    return PhageomeData(
        abundance=data.abundance[list(samples)].copy(),
        taxonomy=data.taxonomy,
        metadata=data.metadata.loc[list(samples)].copy()
    )


def filter_viral_taxa(data):
    """
    Keep only viral, non-contaminant vOTUs.

    Parameters:
    -----------
    data : PhageomeData
        Aligned tables

    Returns:
    --------
    PhageomeData
        Tables restricted to vOTUs with Contaminant == No and Viral == Yes
    """
    keep = (~data.taxonomy['Contaminant']) & data.taxonomy['Viral']
    kept_taxa = data.taxonomy.index[keep]

    logger.info(f"Filtering from {len(data.taxonomy)} to {len(kept_taxa)} viral, non-contaminant vOTUs")

    return PhageomeData(
        abundance=data.abundance.loc[kept_taxa].copy(),
        taxonomy=data.taxonomy.loc[kept_taxa].copy(),
        metadata=data.metadata
    )


def normalize_abundance(abundance_df):
    """
    Convert counts to per-sample relative abundances.

    Parameters:
    -----------
    abundance_df : pandas.DataFrame
        Taxa abundance DataFrame with taxa as index, samples as columns

    Returns:
    --------
    pandas.DataFrame
        Proportions; every column sums to 1
    """
    totals = abundance_df.sum(axis=0)
    empty = totals.index[totals <= 0].tolist()
    if empty:
        raise EmptySampleError(
            f"Samples with zero total abundance after filtering: {empty}",
            samples=empty
        )

    return abundance_df.div(totals, axis=1)
