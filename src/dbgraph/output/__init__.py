from dbgraph.output.json_out import GraphJSONExporter
from dbgraph.output.sql_out import RecursiveConstraintSQL
from dbgraph.output.text_out import format_order_listing, write_order_listing

__all__ = [
    "GraphJSONExporter",
    "RecursiveConstraintSQL",
    "format_order_listing",
    "write_order_listing",
]
