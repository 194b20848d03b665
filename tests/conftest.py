"""
Shared fixtures: a small cohort of four individuals, each with one stool
(_F) and one blood (_B) sample.
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / 'tools'))

from phageome_tools import build_phageome_data  # noqa: E402

SAMPLES = ['P01_F', 'P01_B', 'P02_F', 'P02_B', 'P03_F', 'P03_B', 'P04_F', 'P04_B']

COUNTS = {
    'V1': [10, 5, 20, 0, 5, 1, 8, 2],
    'V2': [10, 0, 0, 3, 5, 0, 8, 0],
    'V3': [0, 5, 10, 3, 5, 1, 0, 2],
    'V4': [5, 0, 10, 0, 5, 2, 8, 0],
    'V5': [0, 0, 0, 4, 0, 0, 0, 3],
    'V6': [5, 0, 0, 0, 0, 0, 8, 0],
    'C1': [100] * 8,
    'N1': [50] * 8,
}

TAXONOMY = {
    #       Contaminant, Viral, Family, HostPhylum
    'V1': ['No', 'Yes', 'Microviridae', 'Bacteroidota'],
    'V2': ['No', 'Yes', 'Siphoviridae', 'Bacillota'],
    'V3': ['No', 'Yes', 'Microviridae', None],
    'V4': ['No', 'Yes', 'Myoviridae', 'Pseudomonadota'],
    'V5': ['No', 'Yes', 'Inoviridae', 'Actinomycetota'],
    'V6': ['No', 'Yes', 'Podoviridae', 'Bacteroidota'],
    'C1': ['Yes', 'Yes', 'Microviridae', 'Bacteroidota'],
    'N1': ['No', 'No', None, None],
}

DISEASE = {'P01': 'Healthy', 'P02': 'Healthy', 'P03': "Crohn's disease", 'P04': "Crohn's disease"}


def make_abundance():
    abundance = pd.DataFrame.from_dict(COUNTS, orient='index', columns=SAMPLES).astype(float)
    abundance.index.name = 'vOTU'
    return abundance


def make_taxonomy():
    taxonomy = pd.DataFrame.from_dict(
        TAXONOMY, orient='index', columns=['Contaminant', 'Viral', 'Family', 'HostPhylum']
    )
    taxonomy.index.name = 'vOTU'
    return taxonomy


def make_metadata():
    metadata = pd.DataFrame({
        'Disease': [DISEASE[s.split('_')[0]] for s in SAMPLES],
        'SampleType': ['Stool' if s.endswith('_F') else 'Plasma' for s in SAMPLES],
    }, index=pd.Index(SAMPLES, name='SampleID'))
    return metadata


@pytest.fixture
def abundance_df():
    return make_abundance()


@pytest.fixture
def metadata_df():
    return make_metadata()


@pytest.fixture
def parsed_taxonomy_df():
    """Taxonomy as returned by load_taxonomy (boolean flags, missing values as NA)."""
    taxonomy = make_taxonomy()
    taxonomy['Contaminant'] = taxonomy['Contaminant'] == 'Yes'
    taxonomy['Viral'] = taxonomy['Viral'] == 'Yes'
    for col in ['Family', 'HostPhylum']:
        taxonomy[col] = taxonomy[col].astype('string')
    return taxonomy


@pytest.fixture
def phageome_data(abundance_df, parsed_taxonomy_df, metadata_df):
    return build_phageome_data(abundance_df, parsed_taxonomy_df, metadata_df)


@pytest.fixture
def input_files(tmp_path):
    """Write the three input tables with their native delimiters."""
    abundance_file = tmp_path / 'abundance.tsv'
    taxonomy_file = tmp_path / 'taxonomy.csv'
    metadata_file = tmp_path / 'metadata.csv'

    make_abundance().astype(int).to_csv(abundance_file, sep='\t')
    make_taxonomy().to_csv(taxonomy_file, sep=',')
    make_metadata().to_csv(metadata_file, sep=';')

    return {
        'abundance': abundance_file,
        'taxonomy': taxonomy_file,
        'metadata': metadata_file,
    }


@pytest.fixture
def config(input_files):
    return {
        'data': {
            'abundance_file': str(input_files['abundance']),
            'taxonomy_file': str(input_files['taxonomy']),
            'metadata_file': str(input_files['metadata']),
            'abundance_sep': '\t',
            'taxonomy_sep': ',',
            'metadata_sep': ';',
        },
        'filtering': {'low_depth_samples': []},
        'metadata': {
            'disease_order': ['Healthy', "Crohn's disease"],
            'sample_type_order': ['Stool', 'Plasma'],
        },
        'aggregation': {
            'host_phylum': {
                'categories': ['Bacteroidota', 'Bacillota', 'Pseudomonadota', 'Unknown'],
                'missing_label': 'Unknown',
            },
            'family': {
                'categories': ['Microviridae', 'Siphoviridae', 'Myoviridae', 'Podoviridae',
                               'Other', 'Unknown'],
                'missing_label': 'Unknown',
                'other_label': 'Other',
            },
        },
        'statistics': {'correction': 'fdr_bh', 'beta_metric': 'braycurtis'},
        'visualization': {
            'figure_dpi': 50,
            'palette': {'disease': {'Healthy': '#4C72B0', "Crohn's disease": '#C44E52'}},
        },
    }
