"""
Perch routing - route table, groups and dispatch.
"""

from .route import Route, RouteGroup, compile_pattern
from .router import Router, RouteMatch

__all__ = ["Route", "RouteGroup", "Router", "RouteMatch", "compile_pattern"]
