"""This package provides the event loop driving a model-backed agent and its stream accumulator."""
