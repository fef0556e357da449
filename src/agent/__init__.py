"""
agent - Orchestration layer.

Contains the planner, the single-step executor, the multi-step
coordinator, confidence auditing, prompts and the tools themselves.
"""
