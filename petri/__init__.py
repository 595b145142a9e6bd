"""
Petri Trait Core

Trait contracts and population queries for a pluggable agent-based
simulation platform. Modules declare the organism traits they need,
an orchestrator merges those declarations into one data layout per
population, and configuration scripts query populations with trait
equations and aggregation modes.

Architecture: modules declare, the layout decides, scripts only read.
"""

__version__ = "0.1.0"
