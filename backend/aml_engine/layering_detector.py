"""
layering_detector.py – Detect multi-hop fund movement (layering chains).

Definition
----------
A chain is recorded for every edge source → dest where
  1. source sends to more than one distinct account, and
  2. dest forwards funds onward (out_degree > 0).

Each chain contributes  chain_length × branching_factor × LAYERING_MULTIPLIER
  chain_length     : node count of the longest simple path starting at dest,
                     capped at LAYERING_MAX_DEPTH nodes
  branching_factor : dest's distinct outgoing destinations

complexity = average contribution over all chains, capped at 100.

Algorithm
---------
Iterative DFS with an explicit stack of successor iterators. A single
path-scoped ``on_path`` set guards against cycles: a node is added when it is
pushed and removed when its iterator is exhausted, so a revisit within the
same path ends that branch without extending it.
"""
from __future__ import annotations

import logging

import networkx as nx
import pandas as pd

from .config import LAYERING_MAX_DEPTH, LAYERING_MULTIPLIER
from .graph_builder import build_graph
from .models import AnalyzerOutcome, ZERO_OUTCOME
from .utils import clamp, round_half_up

log = logging.getLogger(__name__)


def chain_length(G: nx.DiGraph, start: str, max_depth: int = LAYERING_MAX_DEPTH) -> int:
    """Node count of the longest simple path from ``start``, at most ``max_depth``."""
    if max_depth <= 0 or start not in G:
        return 0

    longest = 1
    on_path = {start}
    stack = [(start, iter(G.successors(start)))]

    while stack:
        node, successors = stack[-1]
        nxt = next(successors, None)
        if nxt is None:
            stack.pop()
            on_path.discard(node)
            continue
        if nxt in on_path or len(stack) >= max_depth:
            continue
        on_path.add(nxt)
        stack.append((nxt, iter(G.successors(nxt))))
        longest = max(longest, len(stack))
        if longest == max_depth:
            break

    return longest


def detect_layering(df: pd.DataFrame, G: nx.DiGraph | None = None) -> AnalyzerOutcome:
    if df.empty:
        return ZERO_OUTCOME

    G = G if G is not None else build_graph(df)

    chains = 0
    total = 0.0
    for source in G.nodes():
        if G.out_degree(source) <= 1:
            continue
        for dest in G.successors(source):
            branching = G.out_degree(dest)
            if branching == 0:
                continue
            chains += 1
            total += chain_length(G, dest) * branching * LAYERING_MULTIPLIER

    if chains == 0:
        log.info("Layering detection: 0 chains")
        return ZERO_OUTCOME

    complexity = round_half_up(clamp(total / chains))
    log.info("Layering detection: %d chains (complexity %d)", chains, complexity)
    return AnalyzerOutcome(complexity, chains)
