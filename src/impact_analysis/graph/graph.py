"""Build the analysis StateGraph.

``build_analysis_graph()`` wires the five stage nodes into a strictly linear
compiled LangGraph::

    START -> extract -> expand -> categorize -> evaluate -> summarize -> END
"""

from typing import Any

from langgraph.graph import END, START, StateGraph

from impact_analysis.graph.nodes import make_stage_node
from impact_analysis.graph.state import AnalysisState
from impact_analysis.services.categorization import ImpactCategorizer
from impact_analysis.services.evaluation import CategoryEvaluator
from impact_analysis.services.expansion import DownstreamExpander
from impact_analysis.services.extraction import StatementExtractor
from impact_analysis.services.observers import CallObserver
from impact_analysis.services.summary import FindingsSummarizer

STAGE_ORDER = ("extract", "expand", "categorize", "evaluate", "summarize")


def build_analysis_graph(
    extractor: StatementExtractor,
    expander: DownstreamExpander,
    categorizer: ImpactCategorizer,
    evaluator: CategoryEvaluator,
    summarizer: FindingsSummarizer,
    observer: CallObserver | None = None,
) -> Any:
    """Build and compile the analysis StateGraph.

    Parameters
    ----------
    extractor, expander, categorizer, evaluator, summarizer:
        The stage instances, injected into node closures.
    observer:
        Notified when each stage completes.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.ainvoke()``.
    """
    graph = StateGraph(AnalysisState)

    stages = dict(zip(STAGE_ORDER, (extractor, expander, categorizer, evaluator, summarizer)))
    for name, stage in stages.items():
        graph.add_node(name, make_stage_node(stage, observer))

    graph.add_edge(START, STAGE_ORDER[0])
    for upstream, downstream in zip(STAGE_ORDER, STAGE_ORDER[1:]):
        graph.add_edge(upstream, downstream)
    graph.add_edge(STAGE_ORDER[-1], END)

    # No checkpointer: state lives for one run only.
    return graph.compile()
