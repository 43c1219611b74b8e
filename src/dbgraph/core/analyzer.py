import time
from collections.abc import Iterable
from dataclasses import dataclass, replace
from pathlib import Path

from dbgraph.adapters.base import MetadataAdapter
from dbgraph.config import AnalysisConfig, DatabaseType, OutputFormat
from dbgraph.constants import DELETION_ORDER_FILE, GRAPH_JSON_FILE, INSERTION_ORDER_FILE
from dbgraph.core.cycles import CycleInfo, detect_cycles
from dbgraph.core.graph import build_schema_graph
from dbgraph.core.implied import apply_implied_constraints
from dbgraph.core.ordering import OrderResult, TableOrderer
from dbgraph.core.orphans import CoverageReport, analyze_coverage, find_orphans
from dbgraph.exceptions import EmptySchemaError, InvalidURLError
from dbgraph.logging import get_logger, log_analysis_complete, log_analysis_start
from dbgraph.models import ForeignKeyConstraint, SchemaGraph, Table
from dbgraph.output.json_out import GraphJSONExporter
from dbgraph.output.sql_out import RecursiveConstraintSQL
from dbgraph.output.text_out import write_order_listing
from dbgraph.utils.connection import get_adapter_for_url

logger = get_logger(__name__)


@dataclass
class AnalysisResult:
    """
    Everything one analysis pass produced.

    Attributes:
        schema: Schema the pass analyzed
        graph: Frozen relationship graph, recursive marks included
        order: Insertion order and the constraints suppressed to get it
        orphans: Tables and views with no relationships, sorted by name
        implied_constraints: Constraints added by naming inference
        cycles: Reference cycles present before any were broken
        coverage: Column exclusion and diagram detail decisions
        db_type: Database the tables were read from; None for supplied tables
        duration_ms: Wall-clock time of the pass
    """

    schema: str | None
    graph: SchemaGraph
    order: OrderResult
    orphans: list[Table]
    implied_constraints: list[ForeignKeyConstraint]
    cycles: list[CycleInfo]
    coverage: CoverageReport
    duration_ms: int = 0
    db_type: DatabaseType | None = None

    @property
    def insertion_order(self) -> list[str]:
        return self.order.insertion_order

    @property
    def deletion_order(self) -> list[str]:
        return self.order.deletion_order

    @property
    def recursive_constraints(self) -> list[ForeignKeyConstraint]:
        return self.order.recursive_constraints

    @property
    def has_cycles(self) -> bool:
        return len(self.cycles) > 0

    def table_count(self) -> int:
        return len(self.graph.tables)


class SchemaAnalyzer:
    """
    Runs one isolated analysis pass over a schema.

    Flow:
    1. Read tables through a metadata adapter (unless supplied)
    2. Apply table inclusion/exclusion patterns
    3. Build the relationship graph, add configured virtual constraints
    4. Infer implied constraints, then freeze the graph
    5. Detect cycles, compute the table order, find orphans
    6. Decide column coverage for rendering
    """

    def __init__(self, config: AnalysisConfig, adapter: MetadataAdapter | None = None):
        self.config = config
        # A supplied adapter is owned by the caller: used as is, never connected or closed
        self.adapter = adapter

    def analyze(self, tables: Iterable[Table] | None = None) -> AnalysisResult:
        """
        Perform the analysis.

        Args:
            tables: Tables to analyze; read from the database when None

        Raises:
            EmptySchemaError: If no table is left to analyze (unless
                ``config.allow_empty``)
            MalformedMetadataError: If the metadata is not well-formed
        """
        start_time = time.time()
        schema = self.config.schema

        pass_logger = logger.with_context(schema=schema) if schema else logger
        log_analysis_start(pass_logger, self.config.database_url if tables is None else None)

        db_type = None
        if tables is None:
            table_list, db_type = self._load_tables()
        else:
            table_list = list(tables)

        if schema is None and table_list:
            schema = table_list[0].schema
            pass_logger = logger.with_context(schema=schema)

        selected = [t for t in table_list if self.config.selects_table(t.name)]
        if len(selected) < len(table_list):
            pass_logger.debug(
                "Tables filtered by patterns",
                kept=len(selected),
                dropped=len(table_list) - len(selected),
            )

        if not selected:
            if not self.config.allow_empty:
                raise EmptySchemaError(schema, filtered=bool(table_list))
            pass_logger.warning("No tables to analyze")

        with pass_logger.timed_operation("graph_construction", table_count=len(selected)):
            graph = build_schema_graph(
                selected,
                virtual_foreign_keys=self.config.virtual_foreign_keys,
                schema=schema,
            )

        implied: list[ForeignKeyConstraint] = []
        if self.config.implied_constraints:
            with pass_logger.timed_operation("implied_constraint_inference"):
                implied = apply_implied_constraints(graph, self.config.naming)

        graph.freeze()

        cycles = detect_cycles(graph)
        for cycle in cycles:
            pass_logger.debug("Reference cycle detected", cycle=str(cycle))

        with pass_logger.timed_operation("table_ordering", table_count=len(graph.tables)):
            order = TableOrderer(graph).compute_order()

        orphans = find_orphans(graph)
        coverage = analyze_coverage(
            graph,
            exclude_columns=self.config.exclude_columns,
            max_detailed_tables=self.config.max_detailed_tables,
        )

        elapsed_ms = int((time.time() - start_time) * 1000)
        log_analysis_complete(
            pass_logger,
            table_count=len(graph.tables),
            constraint_count=len(graph.constraints()),
            implied_count=len(implied),
            recursive_count=len(order.recursive_constraints),
            duration_ms=elapsed_ms,
        )

        return AnalysisResult(
            schema=schema,
            graph=graph,
            order=order,
            orphans=orphans,
            implied_constraints=implied,
            cycles=cycles,
            coverage=coverage,
            duration_ms=elapsed_ms,
            db_type=db_type,
        )

    def _load_tables(self) -> tuple[list[Table], DatabaseType | None]:
        if self.adapter is not None:
            with logger.timed_operation("schema_introspection"):
                return self.adapter.get_tables(self.config.schema), self.adapter.db_type

        url = self.config.database_url
        if not url:
            raise InvalidURLError("", "A database URL is required when no tables are given")

        adapter = get_adapter_for_url(url)
        try:
            with logger.timed_operation("database_connection"):
                adapter.connect(url)
            with logger.timed_operation("schema_introspection"):
                return adapter.get_tables(self.config.schema), adapter.db_type
        finally:
            adapter.close()


def analyze_schemas(
    config: AnalysisConfig,
    schemas: list[str],
    adapter: MetadataAdapter | None = None,
) -> dict[str, AnalysisResult]:
    """
    Analyze several schemas as independent passes.

    Each schema gets its own graph; nothing carries over between passes.
    Empty schemas yield empty results instead of failing the whole run.

    Returns:
        Results keyed by schema name, in the order given
    """
    results: dict[str, AnalysisResult] = {}
    for schema in schemas:
        pass_config = replace(config, schema=schema, allow_empty=True)
        results[schema] = SchemaAnalyzer(pass_config, adapter=adapter).analyze()
    return results


def write_outputs(
    result: AnalysisResult,
    out_dir: Path | str,
    formats: Iterable[OutputFormat] | None = None,
) -> list[Path]:
    """
    Write the selected output files of a pass into ``out_dir``.

    Returns:
        Paths written, in a fixed order
    """
    out_dir = Path(out_dir)
    formats = set(formats) if formats is not None else set(OutputFormat)
    written: list[Path] = []

    if OutputFormat.TEXT in formats:
        written.append(write_order_listing(out_dir / INSERTION_ORDER_FILE, result.insertion_order))
        written.append(write_order_listing(out_dir / DELETION_ORDER_FILE, result.deletion_order))

    if OutputFormat.JSON in formats:
        written.append(GraphJSONExporter().write_to_file(result, out_dir / GRAPH_JSON_FILE))

    if OutputFormat.SQL in formats:
        generator = RecursiveConstraintSQL(schema=result.schema, db_type=result.db_type)
        written.extend(generator.write(out_dir, result.recursive_constraints))

    for path in written:
        logger.debug("Wrote output file", path=str(path))
    return written
