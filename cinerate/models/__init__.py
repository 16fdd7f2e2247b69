from .entity import Entity, Voter
from .vote import Vote

__all__ = ["Entity", "Vote", "Voter"]
