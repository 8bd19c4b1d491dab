"""
LangGraph workflow definition for summary generation.
"""

from __future__ import annotations

from typing import Any

from langgraph.graph import END, START, StateGraph

from app.pipeline.models import GenerationState
from app.pipeline.steps import GenerationSteps


async def _load_record(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    """Fetch the record; a missing record is a permanent failure."""
    state["record"] = steps.load_record(state["job"]["summary_id"])
    return state


async def _build_prompt(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    job = state["job"]
    record = state["record"]
    state["model"] = steps.resolve_model(job, record)
    state["messages"] = steps.build_messages(job, record)
    state["options"] = steps.generation_options(job.get("kind") or record.kind)
    return state


async def _call_model(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    state["raw_response"] = await steps.call_model(
        state["model"], state["messages"], state["options"]
    )
    return state


async def _checkpoint(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    steps.checkpoint(state["job"]["summary_id"], state["raw_response"], state["model"])
    return state


async def _parse_response(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    state["parsed"] = steps.parse(state["raw_response"])
    return state


async def _finalize(state: GenerationState, steps: GenerationSteps) -> GenerationState:
    job = state["job"]
    state["result"] = steps.finalize(
        job["summary_id"], job.get("kind") or state["record"].kind, state.get("parsed")
    )
    return state


def create_generation_graph(steps: GenerationSteps) -> Any:
    """Compile and return the summary generation workflow."""
    graph = StateGraph(GenerationState)

    async def load_record_node(state: GenerationState) -> GenerationState:
        return await _load_record(state, steps)

    async def build_prompt_node(state: GenerationState) -> GenerationState:
        return await _build_prompt(state, steps)

    async def call_model_node(state: GenerationState) -> GenerationState:
        return await _call_model(state, steps)

    async def checkpoint_node(state: GenerationState) -> GenerationState:
        return await _checkpoint(state, steps)

    async def parse_response_node(state: GenerationState) -> GenerationState:
        return await _parse_response(state, steps)

    async def finalize_node(state: GenerationState) -> GenerationState:
        return await _finalize(state, steps)

    graph.add_node("load_record", load_record_node)
    graph.add_node("build_prompt", build_prompt_node)
    graph.add_node("call_model", call_model_node)
    graph.add_node("checkpoint", checkpoint_node)
    graph.add_node("parse_response", parse_response_node)
    graph.add_node("finalize", finalize_node)

    graph.add_edge(START, "load_record")
    graph.add_edge("load_record", "build_prompt")
    graph.add_edge("build_prompt", "call_model")
    graph.add_edge("call_model", "checkpoint")
    graph.add_edge("checkpoint", "parse_response")
    graph.add_edge("parse_response", "finalize")
    graph.add_edge("finalize", END)
    return graph.compile()


__all__ = ["create_generation_graph"]
