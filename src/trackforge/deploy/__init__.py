"""Catalog deployment of generated tracks."""

from .tracker import DeploymentTracker, DeployOutcome, DeployStatus, build_catalog_metadata

__all__ = ["DeployOutcome", "DeployStatus", "DeploymentTracker", "build_catalog_metadata"]
