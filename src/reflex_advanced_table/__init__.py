"""reflex-advanced-table – a data-grid engine for Reflex admin apps.

Server-driven pagination, sorting, filtering and search over pluggable
data sources, optimistic inline editing and id-based row selection::

    pip install reflex-advanced-table
"""

from reflex_advanced_table.api_source import ApiDataSource, ApiEndpoints, Transport
from reflex_advanced_table.config import TableOptions
from reflex_advanced_table.datasource import (
    DataSource,
    build_query_params,
    normalize_response,
    translate_filters,
)
from reflex_advanced_table.editing import RowEditState, TableEditor
from reflex_advanced_table.exceptions import (
    AdvancedTableError,
    CommitError,
    FetchError,
    UnsupportedOperation,
    ValidationError,
)
from reflex_advanced_table.fetcher import FetchOrchestrator
from reflex_advanced_table.memory import InMemoryDataSource, JsonFileDataSource
from reflex_advanced_table.models import (
    BulkError,
    BulkOperationResult,
    ColumnDef,
    ColumnDefinition,
    DataSourceParams,
    DataSourceResult,
    Pagination,
    SelectOption,
    SortSpec,
    ValidationRules,
    row_id_getter,
)
from reflex_advanced_table.polars_utils import load_frame
from reflex_advanced_table.repository import (
    FieldMapTransformer,
    IdentityTransformer,
    RepositoryDataSource,
    Transformer,
    batch_update_with_fallback,
    bulk_delete_with_fallback,
)
from reflex_advanced_table.schema import (
    ManualSchemaProvider,
    PolarsSchemaProvider,
    SchemaProvider,
    format_value,
    to_grid_columns,
)
from reflex_advanced_table.selection import RowSelection
from reflex_advanced_table.state import TableState, TableStateController
from reflex_advanced_table.table import AdvancedTable
from reflex_advanced_table.table_grid import (
    AdvancedTableMixin,
    filter_model_to_filters,
    merge_filter_model,
    pagination_model_to_page,
    sort_model_to_sorting,
)
from reflex_advanced_table.validation import validate_changes, validate_value
