import pandas as pd
import pytest
from dbaccess.loaders import iterdict_data_loader, pandas_numpy_data_loader
from dbaccess.loaders import pandas_pyarrow_data_loader
from dbaccess.metadata import ResultSetMetaData
from dbaccess.native.base import NativeField


@pytest.fixture
def metadata():
    fields = [NativeField(name='id', type_code='INTEGER'),
              NativeField(name='name', type_code='TEXT')]
    return ResultSetMetaData.from_native(fields, 'sqlite')


@pytest.fixture
def data():
    return [{'id': 1, 'name': 'Alice'}, {'id': 2, 'name': 'Bob'}]


def test_iterdict_loader(data, metadata):
    assert iterdict_data_loader(data, metadata) == data
    assert iterdict_data_loader([], metadata) == []


def test_pandas_numpy_loader(data, metadata):
    df = pandas_numpy_data_loader(data, metadata)
    assert list(df.columns) == ['id', 'name']
    assert df['id'].tolist() == [1, 2]
    assert df.attrs['column_types']['id']['type'] == 'bigint'


def test_pandas_pyarrow_loader(data, metadata):
    df = pandas_pyarrow_data_loader(data, metadata)
    assert list(df.columns) == ['id', 'name']
    assert isinstance(df['id'].dtype, pd.ArrowDtype)
    assert df['name'].tolist() == ['Alice', 'Bob']
    assert df.attrs['column_types']['name']['type'] == 'varchar'


@pytest.mark.parametrize('loader', [pandas_numpy_data_loader, pandas_pyarrow_data_loader])
def test_empty_result_keeps_columns(metadata, loader):
    df = loader([], metadata)
    assert isinstance(df, pd.DataFrame)
    assert df.empty
    assert list(df.columns) == ['id', 'name']
    assert 'column_types' in df.attrs


@pytest.mark.parametrize('loader', [pandas_numpy_data_loader, pandas_pyarrow_data_loader])
def test_repeated_labels_keep_every_column(loader):
    md = ResultSetMetaData.from_native([NativeField(name='id'), NativeField(name='id')], 'sqlite')
    df = loader([{'id': 1, 'id_2': 2}], md)
    assert list(df.columns) == ['id', 'id_2']
    assert df.iloc[0].tolist() == [1, 2]
