"""Git history based hot-folder scoring."""

from codemap.git.activity import FolderScore, GitScoreCache, merge_live_activity, score_folders

__all__ = ["FolderScore", "GitScoreCache", "merge_live_activity", "score_folders"]
