from dbgraph.core.cycles import CycleInfo, detect_cycles
from dbgraph.core.graph import build_schema_graph
from dbgraph.core.implied import apply_implied_constraints, infer_implied_constraints
from dbgraph.core.naming import MatchConfidence, NamingPolicy
from dbgraph.core.ordering import OrderResult, TableOrderer, compute_order
from dbgraph.core.orphans import CoverageReport, analyze_coverage, find_orphans

__all__ = [
    "CoverageReport",
    "CycleInfo",
    "MatchConfidence",
    "NamingPolicy",
    "OrderResult",
    "TableOrderer",
    "analyze_coverage",
    "apply_implied_constraints",
    "build_schema_graph",
    "compute_order",
    "detect_cycles",
    "find_orphans",
    "infer_implied_constraints",
]
