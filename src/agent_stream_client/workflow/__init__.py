"""Workflow engine and snapshot models.

A workflow is a sub-range of a turn's event stream (from `start_of_workflow`
to `end_of_workflow`) interpreted as agent steps made of thinking and
tool-call tasks.
"""

__all__: list[str] = []
