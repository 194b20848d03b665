"""
End-to-end tests of the figure pipeline on the small cohort.
"""

import pandas as pd
import pytest

from phageome_tools import (
    FIGURE_FILES,
    EmptySampleError,
    build_phageome_data,
    prepare_results,
    render_figures,
    run_pipeline,
    write_tables,
)


@pytest.fixture
def results(config):
    return run_pipeline(config)


def test_overlap_summary(results):
    summary = results.overlap.summary

    assert list(summary.index) == ['P01', 'P02', 'P03', 'P04']
    assert summary['SharedCount'].tolist() == [1, 1, 3, 1]
    assert summary.loc['P01', 'PercentOfFeces'] == pytest.approx(25.0)
    assert summary.loc['P01', 'PercentOfBlood'] == pytest.approx(50.0)
    assert summary.loc['P04', ['FecesCount', 'BloodCount']].tolist() == [4, 3]


def test_contaminants_and_non_viral_taxa_removed(results):
    assert 'C1' not in results.proportions.index
    assert 'N1' not in results.proportions.index
    assert results.proportions.sum().tolist() == pytest.approx([1.0] * 8)


def test_compartment_sets_and_frequencies(results):
    assert results.feces_taxa == {'V1', 'V2', 'V3', 'V4', 'V6'}
    assert results.blood_taxa == {'V1', 'V2', 'V3', 'V4', 'V5'}
    assert results.shared_taxa == {'V1', 'V2', 'V3', 'V4'}

    assert results.blood_family.to_dict() == {
        'Microviridae': 2, 'Siphoviridae': 1, 'Myoviridae': 1,
        'Podoviridae': 0, 'Other': 1, 'Unknown': 0
    }
    assert results.shared_host_phylum.to_dict() == {
        'Bacteroidota': 1, 'Bacillota': 1, 'Pseudomonadota': 1, 'Unknown': 1
    }


def test_group_tests(results):
    tests = results.group_tests

    assert list(tests.index) == ['PercentOfFeces', 'PercentOfBlood', 'Shannon (Stool)', 'Shannon (Plasma)']
    assert tests['N1'].tolist() == [2, 2, 2, 2]
    assert tests['P-value'].notna().all()
    assert (tests['Adjusted P-value'] >= tests['P-value'] - 1e-12).all()


def test_dissimilarity_per_pair(results):
    dissimilarity = results.dissimilarity

    assert list(dissimilarity.index) == ['P01', 'P02', 'P03', 'P04']
    assert dissimilarity['Dissimilarity'].between(0, 1).all()
    assert dissimilarity.loc['P03', 'BloodSample'] == 'P03_B'


def test_excluded_sample_drops_its_individual(config):
    config['filtering']['low_depth_samples'] = ['P04_B']

    results = run_pipeline(config)

    assert 'P04' not in results.overlap.summary.index
    assert 'P04' not in results.dissimilarity.index
    assert 'P04_F' not in results.paired_samples
    # The orphan stool sample still counts towards alpha diversity
    assert len(results.alpha_diversity) == 7
    assert 'P04_F' in results.alpha_diversity.index


def test_relative_paths_resolved_against_base_dir(config, input_files):
    for key in ['abundance', 'taxonomy', 'metadata']:
        config['data'][f'{key}_file'] = input_files[key].name

    results = run_pipeline(config, base_dir=input_files['abundance'].parent)

    assert len(results.overlap.summary) == 4


def test_sample_without_viral_reads_raises(config, abundance_df, parsed_taxonomy_df, metadata_df):
    viral = ['V1', 'V2', 'V3', 'V4', 'V5', 'V6']
    abundance_df.loc[viral, 'P02_B'] = 0.0
    data = build_phageome_data(abundance_df, parsed_taxonomy_df, metadata_df)

    with pytest.raises(EmptySampleError) as excinfo:
        prepare_results(data, config)
    assert excinfo.value.samples == ['P02_B']


def test_render_figures(results, config, tmp_path):
    saved = render_figures(results, tmp_path / 'figures', config)

    assert [path.name for path in saved] == FIGURE_FILES
    for path in saved:
        assert path.exists() and path.stat().st_size > 0


def test_write_tables(results, tmp_path):
    saved = write_tables(results, tmp_path / 'tables')

    assert len(saved) == 7
    summary = pd.read_csv(tmp_path / 'tables' / 'overlap_summary.csv', index_col=0)
    assert summary['SharedCount'].tolist() == [1, 1, 3, 1]

    compartments = pd.read_csv(tmp_path / 'tables' / 'compartment_votus.csv', index_col=0)
    assert compartments.loc['V6', 'InStool'] and not compartments.loc['V6', 'InBlood']
