from stageflow.generators.synthetic import SnapshotGenerator

__all__ = ["SnapshotGenerator"]
