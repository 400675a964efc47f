"""
Tests for run configuration, feature schemas and survey loading.
"""

import json

import pytest

from covid_survey_clustering.config import PipelineConfig
from covid_survey_clustering.data_loader import SurveyDataLoader, load_schema
from covid_survey_clustering.data_structures import FeatureSchema, FeatureKind
from covid_survey_clustering.errors import ConfigurationError, DataIntegrityError


def test_config_defaults():
    config = PipelineConfig()
    assert config.indel_cost == 1.0
    assert config.max_cost == 2.0
    assert config.state_space == 'shared'
    assert config.linkage == 'ward.D2'
    assert config.to_dict()['n_clusters'] == 2


@pytest.mark.parametrize('overrides', [
    {'indel_cost': -0.5},
    {'max_cost': 0.0},
    {'n_clusters': 0},
    {'state_space': 'per_position'},
    {'linkage': 'complete'},
    {'n_jobs': 0},
])
def test_invalid_config_raises(overrides):
    with pytest.raises(ConfigurationError):
        PipelineConfig(**overrides)


def test_config_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError, match='indel'):
        PipelineConfig.from_dict({'indel': 2.0})


def test_config_from_json(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'indel_cost': 0.5, 'n_clusters': 4}))

    config = PipelineConfig.from_json(str(path))
    assert config.indel_cost == 0.5
    assert config.n_clusters == 4

    with pytest.raises(ConfigurationError):
        PipelineConfig.from_json(str(tmp_path / 'missing.json'))


def test_schema_from_dict_formats():
    nested = FeatureSchema.from_dict({'features': [
        {'name': 'fever', 'kind': 'categorical', 'categories': ['no', 'yes']},
        {'name': 'age', 'kind': 'numeric'},
        {'name': 'comments', 'kind': 'excluded'},
    ]})
    assert nested.categorical_features == ['fever']
    assert nested.numeric_features == ['age']
    assert nested.get('fever').categories == ('no', 'yes')
    assert nested.get('comments').kind == FeatureKind.EXCLUDED

    flat = FeatureSchema.from_dict({'fever': 'categorical', 'age': 'NUMERIC'})
    assert flat.categorical_features == ['fever']
    assert flat.numeric_features == ['age']


def test_schema_errors():
    with pytest.raises(ConfigurationError):
        FeatureSchema.categorical(['q1', 'q1'])
    with pytest.raises(ConfigurationError):
        FeatureSchema.from_dict({'q1': 'ordinal'})
    with pytest.raises(ConfigurationError):
        FeatureSchema.categorical(['q1']).get('q2')


def test_load_schema(tmp_path):
    path = tmp_path / 'schema.json'
    path.write_text(json.dumps({'q1': 'categorical', 'q2': 'categorical'}))

    assert load_schema(str(path)).categorical_features == ['q1', 'q2']
    with pytest.raises(ConfigurationError):
        load_schema(str(tmp_path / 'missing.json'))


def test_load_csv_with_subject_ids(tmp_path):
    path = tmp_path / 'survey.csv'
    path.write_text('id,age,fever\nP1,34,yes\nP2,NA,no\n')

    df = SurveyDataLoader.from_csv(str(path), id_col='id')
    assert list(df.index) == ['P1', 'P2']
    assert list(df.columns) == ['age', 'fever']
    assert df.loc['P1', 'age'] == '34'

    schema = FeatureSchema.from_dict({'age': 'numeric', 'fever': 'categorical'})
    coerced = SurveyDataLoader.coerce_numeric(df, schema)
    assert coerced.loc['P1', 'age'] == 34
    assert coerced['age'].isna().sum() == 1


def test_load_csv_errors(tmp_path):
    path = tmp_path / 'survey.csv'
    path.write_text('id,fever\nP1,yes\nP1,no\n')

    with pytest.raises(DataIntegrityError):
        SurveyDataLoader.from_csv(str(path), id_col='id')
    with pytest.raises(ConfigurationError):
        SurveyDataLoader.from_csv(str(path), id_col='subject')
    with pytest.raises(DataIntegrityError):
        SurveyDataLoader.from_csv(str(tmp_path / 'missing.csv'))
