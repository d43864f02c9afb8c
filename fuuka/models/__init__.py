from fuuka.models.models import Board, Post

__all__ = ["Board", "Post"]
