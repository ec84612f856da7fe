"""Artifact archiving for run results."""

from systest.archive.archiver import ArtifactArchiver, ArtifactSink, LocalDirectorySink

__all__ = [
    "ArtifactArchiver",
    "ArtifactSink",
    "LocalDirectorySink",
]
