"""Exploration layer - graph engine, expansion lifecycle, layout and session format."""
from exploration.autosave import DebouncedSessionSaver
from exploration.expansion import ExpansionController
from exploration.explorer import Explorer
from exploration.follow_up import FollowUpExtractor, extract_follow_ups
from exploration.graph_store import GraphChange, GraphStore
from exploration.layout import LayoutConfig, LayoutEngine, compute_layout
from exploration.session_codec import BranchImport, GraphImport, SessionCodec, suggest_filename

__all__ = [
    "DebouncedSessionSaver",
    "ExpansionController",
    "Explorer",
    "FollowUpExtractor",
    "extract_follow_ups",
    "GraphChange",
    "GraphStore",
    "LayoutConfig",
    "LayoutEngine",
    "compute_layout",
    "BranchImport",
    "GraphImport",
    "SessionCodec",
    "suggest_filename",
]
