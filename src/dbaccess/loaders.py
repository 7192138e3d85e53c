"""
Result loaders.

A data loader receives the materialized rows of a result set as a list of
dicts (keyed by column label) and its `ResultSetMetaData`, and returns the
shape the caller asked for.
"""
from typing import TYPE_CHECKING

import pandas as pd
import pyarrow as pa

if TYPE_CHECKING:
    from dbaccess.metadata import ResultSetMetaData

__all__ = [
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
]


def iterdict_data_loader(data, metadata: 'ResultSetMetaData', **kwargs) -> list[dict]:
    """Minimal data loader.
    """
    if not data:
        return []
    return list(data)


def _empty_dataframe(metadata: 'ResultSetMetaData') -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=metadata.get_unique_labels())
    df.attrs['column_types'] = metadata.to_dict()
    return df


def pandas_numpy_data_loader(data, metadata: 'ResultSetMetaData', **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    Includes type information in the DataFrame.attrs attribute.
    """
    if not data:
        return _empty_dataframe(metadata)

    df = pd.DataFrame.from_records(list(data), columns=metadata.get_unique_labels())
    df.attrs['column_types'] = metadata.to_dict()
    return df


def pandas_pyarrow_data_loader(data, metadata: 'ResultSetMetaData', **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(metadata)

    labels = metadata.get_unique_labels()
    columns_data = [[row[label] for row in data] for label in labels]
    df = pa.table(columns_data, names=labels).to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = metadata.to_dict()
    return df
