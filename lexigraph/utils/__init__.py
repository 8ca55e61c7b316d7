"""Utility subpackage shared by the graph and recommendation modules"""

from .logger import (
	get_logger,
	set_request_context,
	get_request_context,
	log_graph_operation,
	log_graph_build,
	log_recommendations,
)

__all__ = [
	'get_logger',
	'set_request_context',
	'get_request_context',
	'log_graph_operation',
	'log_graph_build',
	'log_recommendations',
]
