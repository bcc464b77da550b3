"""Metric tags describing where a test run happened.

The environment is passed in as a mapping, captured once by the caller,
so tag resolution never reads ``os.environ`` on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class TagSource(str, Enum):
    """Where tag values come from."""

    AUTO = "auto"
    ENV = "env"
    CIRCLECI = "circleci"


class Tags(BaseModel):
    """Tag values for a run."""

    model_config = ConfigDict(frozen=True)

    git_branch: str = ""
    git_repo: str = ""
    ci_job: str = ""

    def as_dict(self) -> dict[str, str]:
        """Return a new dict of all tags, keyed by metric tag name."""
        return {
            "git.branch": self.git_branch,
            "git.repo": self.git_repo,
            "ci.job": self.ci_job,
        }


def resolve_tag_source(source: TagSource | str, environ: Mapping[str, str]) -> TagSource:
    """Turn ``auto`` into a concrete source.

    Raises
    ------
    ValueError
        If *source* is not a known tag source.
    """
    if not isinstance(source, TagSource):
        try:
            source = TagSource((source or "auto").lower())
        except ValueError:
            raise ValueError(f"unsupported tag source: {source}") from None

    if source != TagSource.AUTO:
        return source
    if environ.get("CIRCLECI"):
        return TagSource.CIRCLECI
    logger.warning("Failed to auto-detect tag source, defaulting to env")
    return TagSource.ENV


def tags_from_env(source: TagSource | str, environ: Mapping[str, str]) -> Tags:
    """Read tag values from *environ* according to *source*."""
    resolved = resolve_tag_source(source, environ)
    if resolved == TagSource.CIRCLECI:
        return Tags(
            git_branch=environ.get("CIRCLE_BRANCH", ""),
            git_repo=environ.get("CIRCLE_REPOSITORY_URL", ""),
            ci_job=environ.get("CIRCLE_JOB", ""),
        )
    return Tags(
        git_branch=environ.get("TESTSTREAM_METRIC_TAG_GITBRANCH", ""),
        git_repo=environ.get("TESTSTREAM_METRIC_TAG_GITREPO", ""),
        ci_job=environ.get("TESTSTREAM_METRIC_TAG_CIJOB", ""),
    )
