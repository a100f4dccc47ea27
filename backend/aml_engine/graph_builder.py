"""
graph_builder.py – Build the directed transaction graph for one detection run.

Accounts are nodes; one edge per distinct (from → to) pair, however many
transactions it carries. The layering rules only read the graph's shape
(successors and out-degree), so no per-node or per-edge totals are kept.
The graph is rebuilt from scratch per batch.
"""
from __future__ import annotations

import logging

import networkx as nx
import pandas as pd

log = logging.getLogger(__name__)


def build_graph(df: pd.DataFrame) -> nx.DiGraph:
    """Construct a directed graph from the transaction frame."""
    G = nx.DiGraph()
    if df.empty:
        log.info("Graph built: 0 nodes, 0 edges")
        return G

    pairs = df[["from_account_id", "to_account_id"]].drop_duplicates()
    G.add_edges_from(pairs.itertuples(index=False, name=None))

    log.info("Graph built: %d nodes, %d edges", G.number_of_nodes(), G.number_of_edges())
    return G
